"""Domain exceptions shared by the services and the HTTP layer."""


class AcademyError(Exception):
    """Base class for academy domain errors."""


class NotFoundError(AcademyError):
    """A requested entity does not exist."""


class InvalidCampaignError(AcademyError):
    """A campaign cannot be automated or run as configured."""


class NotificationError(AcademyError):
    """The outbound notifier rejected or failed to deliver a message."""
