"""Outbound social posting."""

from lendbot.social.poster import SocialPoster, post_safely

__all__ = ["SocialPoster", "post_safely"]
