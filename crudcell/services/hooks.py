from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass
class Hooks:
	""" Optional callbacks invoked at named stages of a service operation. A missing slot is a no-op.

	Slots that receive a value (query, options, document_candidate, after, skip) may mutate it in place, or return a replacement.
	`before` runs inside the operation's session right before the store is touched, `after` right after.
	The session the operation runs under is always the last argument of before/after, so hooks can take part in the same transaction.
	"""
	query: Callable[[dict[str, Any]], dict[str, Any] | None] | None = None
	options: Callable[[dict[str, Any]], dict[str, Any] | None] | None = None
	document_candidate: Callable[[Any], Any] | None = None
	before: Callable[..., None] | None = None
	after: Callable[..., Any] | None = None
	skip: Callable[[list[str]], list[str] | None] | None = None
	""" Fills the list of first-level candidate keys that authorization and coercion should let through untouched. """

	is_session_enabled: bool | None = None
	""" None leaves the decision to the operation. False also stops operations that would otherwise force an internal session. """

	raise_document_existence_errors: bool | None = None
	""" Overrides the service's own setting for one call. """

	bearer: dict[str, Any] = field(default_factory=dict)
	""" Free-form state shared between the hooks of one call, and passed down to the hooks of inner service calls. """

	def on_query_built(self, query: dict[str, Any]) -> dict[str, Any]:
		return _apply(self.query, query)

	def on_options_built(self, options: dict[str, Any]) -> dict[str, Any]:
		return _apply(self.options, options)

	def on_candidate_built(self, candidate: Any) -> Any:
		return _apply(self.document_candidate, candidate)

	def on_before_persist(self, *args: Any) -> None:
		if self.before is not None:
			self.before(*args)

	def on_after_persist(self, result: Any, *args: Any) -> Any:
		return _apply(self.after, result, *args)

	def collect_skip(self) -> list[str]:
		return list(_apply(self.skip, []))

	def for_inner_call(self) -> 'Hooks':
		""" Hooks handed to the service a controller operation delegates to. Only the skip list and the bearer travel down. """
		return Hooks(skip=self.skip, bearer=self.bearer)


def _apply(slot: Callable[..., Any] | None, value: Any, *args: Any) -> Any:
	if slot is None:
		return value
	replacement = slot(value, *args)
	return value if replacement is None else replacement
