from crudcell.services.hooks import Hooks


class TestHooks:
    def test_missing_slots_are_no_ops(self):
        hooks = Hooks()
        query = {"author": "Herbert"}

        assert hooks.on_query_built(query) is query
        assert hooks.on_after_persist([1], None) == [1]
        assert hooks.collect_skip() == []
        hooks.on_before_persist({}, None)

    def test_in_place_mutation_or_replacement(self):
        def mutate(options):
            options["limit"] = 1

        hooks = Hooks(options=mutate, query=lambda query: {"replaced": True})
        assert hooks.on_options_built({}) == {"limit": 1}
        assert hooks.on_query_built({}) == {"replaced": True}

    def test_inner_call_keeps_only_skip_and_bearer(self):
        skip = lambda fields: ["legacyId"]
        hooks = Hooks(skip=skip, before=print, is_session_enabled=True, bearer={"user": "ada"})

        inner = hooks.for_inner_call()
        assert inner.skip is skip
        assert inner.bearer is hooks.bearer
        assert inner.before is None
        assert inner.is_session_enabled is None
