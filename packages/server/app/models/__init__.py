# SQLModel definitions — imported here to ensure metadata is populated for Alembic.
from .base import UUIDMixin, TimestampMixin, CreatedAtMixin  # noqa: F401
from .site import Site, SiteMember  # noqa: F401
from .asset_version import AssetVersion  # noqa: F401
from .template import Template  # noqa: F401
from .invitation import Invitation  # noqa: F401
from .activity import ActivityLog  # noqa: F401
from .user import Profile, UserRole  # noqa: F401
from .github_installation import GitHubInstallation  # noqa: F401
from .asset_share import AssetShare  # noqa: F401
