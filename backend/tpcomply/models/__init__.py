from tpcomply.models.firm import Firm, User  # noqa: F401
from tpcomply.models.client import Client, Engagement, Document  # noqa: F401
from tpcomply.models.audit import AuditLog  # noqa: F401
