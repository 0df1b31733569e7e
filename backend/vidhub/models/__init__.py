from vidhub.models.comment import Comment
from vidhub.models.identity import Identity
from vidhub.models.playlist import Playlist
from vidhub.models.reaction import Reaction, ReactionTarget
from vidhub.models.session_record import SessionRecord
from vidhub.models.subscription import Subscription
from vidhub.models.video import Video

__all__ = [
    "Identity",
    "SessionRecord",
    "Video",
    "Comment",
    "Playlist",
    "Subscription",
    "Reaction",
    "ReactionTarget",
]
