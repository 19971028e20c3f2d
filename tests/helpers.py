from histshow import ProcessResolver, ShellDetectionError


class FakeResolver(ProcessResolver):
    """Stands in for the process table: reports a fixed parent name, or fails."""

    def __init__(self, name: str | None):
        self.name = name
        self.calls = 0

    def resolve_parent_executable_name(self) -> str:
        self.calls += 1
        if self.name is None:
            raise ShellDetectionError("Unable to find parent process 4242")
        return self.name
