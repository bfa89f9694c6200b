# runtime/hooks.py


class NoopHooks:
    def run_start(self, **_):
        pass

    def graph_resolved(self, **_):
        pass

    def catalog_failed(self, **_):
        pass

    def anchor_selected(self, **_):
        pass

    def search_failed(self, **_):
        pass

    def run_end(self, **_):
        pass
