from __future__ import annotations

from compose_py.dsl import component, contract, entry, execute, handle, markers_of
from compose_py.runtime import Response


def test_bare_and_called_markers_record_arguments() -> None:
    @entry
    @component(path="vault", skip=["query"])
    class Vault:
        @execute
        def deposit(ctx, amount: int) -> Response:
            return Response()

    assert markers_of(Vault) == [
        {"marker": "component", "path": "vault", "skip": ["query"]},
        {"marker": "entry"},
    ]
    assert markers_of(Vault.deposit) == [{"marker": "execute"}]
    # markers leave the handler callable as written
    assert Vault.deposit(None, 1).attributes == []


def test_alias_is_recorded_as_written() -> None:
    @handle
    def bump(ctx) -> Response:
        return Response()

    assert markers_of(bump) == [{"marker": "handle"}]


def test_subclass_does_not_inherit_markers() -> None:
    @component(path="base")
    class Base:
        pass

    class Plain(Base):
        pass

    @contract(components=[Base], error=ValueError)
    class Derived(Base):
        pass

    assert markers_of(Plain) == []
    assert [m["marker"] for m in markers_of(Derived)] == ["contract"]
    assert [m["marker"] for m in markers_of(Base)] == ["component"]


def test_unmarked_objects_have_no_markers() -> None:
    assert markers_of(len) == []
    assert markers_of(object()) == []
