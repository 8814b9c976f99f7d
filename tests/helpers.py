"""Small assertions shared by the test modules."""


def published_events(bus) -> list[tuple[str, str]]:
    """(room, event) pairs of every publish made on a mocked bus."""
    return [(c.args[0], c.args[1]) for c in bus.publish.await_args_list]


def published_payloads(bus, event: str) -> list:
    return [c.args[2] for c in bus.publish.await_args_list if c.args[1] == event]
