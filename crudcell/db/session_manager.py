from typing import Callable, TypeVar

from pymongo import MongoClient, ReadPreference
from pymongo.client_session import ClientSession, TransactionOptions
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern

from ..utilities.errors import InvalidArgumentsError
from ..utilities.logger import logger

T = TypeVar("T")

DEFAULT_TRANSACTION_OPTIONS = TransactionOptions(
	read_concern=ReadConcern("majority"),
	write_concern=WriteConcern(w="majority"),
	read_preference=ReadPreference.PRIMARY
)


class SessionManager:
	""" Decides per call whether a session is needed and runs functions under it.
	Whoever starts a session ends it: sessions passed in by a caller (external) are never ended here,
	sessions started here (internal) are always ended here, exactly once. """

	def __init__(self, client: MongoClient, transaction_options: TransactionOptions = DEFAULT_TRANSACTION_OPTIONS) -> None:
		self.client = client
		self.transaction_options = transaction_options

	def generate_session(
		self,
		external_session: ClientSession | None,
		is_enabled_by_hook: bool | None = None,
		is_forced: bool = False
	) -> tuple[ClientSession | None, ClientSession | None]:
		""" Returns (session, internal_session). `session` is the one operations should run under.

		Without is_forced, an internal session is started only when the hook enables sessions.
		With is_forced, an internal session is started unless the hook explicitly disables sessions.
		No internal session is started when the caller passed one in.
		"""
		internal_session = None
		if external_session is None:
			if is_forced and is_enabled_by_hook is not False:
				internal_session = self.start_session()
			elif not is_forced and is_enabled_by_hook:
				internal_session = self.start_session()

		session = external_session if external_session is not None else internal_session
		return session, internal_session

	def generate_session_for_controller(self, is_enabled_by_hook: bool | None = None) -> ClientSession | None:
		""" Controllers have no caller session, so they only start one when the hook asks for it. """
		return self.start_session() if is_enabled_by_hook else None

	def start_session(self) -> ClientSession:
		return self.client.start_session()

	def exec(
		self,
		func: Callable[[], T],
		external_session: ClientSession | None,
		internal_session: ClientSession | None
	) -> T:
		""" Runs func under the right session and returns its result. Errors propagate unchanged, after the internal session has ended.

		external session: func runs directly, the caller owns the transaction.
		internal session: func runs inside with_transaction(), so an error rolls the transaction back.
		no session: func runs directly.
		"""
		if not callable(func):
			raise InvalidArgumentsError(f"Expected a callable, but got {type(func).__name__}.")

		# A session started by the caller must end where it has begun
		if external_session is not None:
			try:
				return func()
			finally:
				if internal_session is not None:
					internal_session.end_session()

		# A session started here must end here
		if internal_session is not None:
			try:
				return internal_session.with_transaction(
					lambda _session: func(),
					read_concern=self.transaction_options.read_concern,
					write_concern=self.transaction_options.write_concern,
					read_preference=self.transaction_options.read_preference,
					max_commit_time_ms=self.transaction_options.max_commit_time_ms
				)
			except Exception as error:
				logger.debug(f"Transaction aborted: {type(error).__name__}: {error}")
				raise
			finally:
				internal_session.end_session()

		return func()
