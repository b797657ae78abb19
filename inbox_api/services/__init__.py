from inbox_api.services.result import Result
from inbox_api.services.ports import StoreError
from inbox_api.services.signature_service import compute_signature, verify_signature
from inbox_api.services.dispatcher import Dispatcher, DispatchSummary
from inbox_api.services.facebook_client import FacebookClient, SendErrorKind
from inbox_api.services.panic_mode import PanicMode
from inbox_api.services.reply_service import ReplyOutcome, send_agent_reply
from inbox_api.services.sync_status import PlatformStatus, SyncStatus, get_platforms, get_sync_status
