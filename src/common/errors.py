"""Exception hierarchy shared by the registry, archive and CLI layers."""


class NeedsPublishError(Exception):
    """Base class for all errors raised by this package."""


class RegistryError(NeedsPublishError):
    """The registry could not be queried or returned an unusable response."""


class RegistryNotFoundError(RegistryError):
    """The package does not exist in the registry (HTTP 404)."""


class PackError(NeedsPublishError):
    """The local working tree could not be packed into a tarball."""


class ArchiveError(NeedsPublishError):
    """A tarball could not be read."""


class ManifestNotFoundError(ArchiveError):
    """A tarball has no package.json; it is malformed and cannot be compared."""


class ConfigError(NeedsPublishError):
    """A configuration file could not be loaded."""
