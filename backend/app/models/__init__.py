# Import models here so Base.metadata knows every table before schema setup.
from app.models.tenant import Tenant  # noqa: F401
from app.models.user import User  # noqa: F401
from app.models.note import Note, NoteAttachment, NoteVersion  # noqa: F401
from app.models.user_invitation import UserInvitation  # noqa: F401
from app.models.user_token import UserToken  # noqa: F401
from app.models.login_attempt import LoginAttempt  # noqa: F401
