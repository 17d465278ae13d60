import textwrap
from typing import List

import pytest

from compose_py.attrs import Role
from compose_py.compiler import compile_source
from compose_py.compiler.model import Program
from compose_py.errors import CompileErrors

PRELUDE = """
from compose_py.dsl import component, contract, entry, execute, execute_guard, init, interface, query
from compose_py.runtime import Response


class Err(Exception):
    pass
"""


def compile_ok(src: str) -> Program:
    """Helper: compile a module body (after the shared prelude) and assert it passes."""
    return compile_source(PRELUDE + textwrap.dedent(src), "contract.py")


def compile_bad(src: str) -> List[str]:
    """Helper: compile a module body and return the diagnostic codes it fails with."""
    with pytest.raises(CompileErrors) as ei:
        compile_source(PRELUDE + textwrap.dedent(src), "contract.py")
    return ei.value.codes


# --- A complete, valid module -------------------------------------------------


def test_valid_module_builds_the_model() -> None:
    program = compile_ok(
        """
        @interface
        class Ownable:
            Error = Err

            @query
            def owner(ctx) -> str: ...

        @component(path="counter", implements=[Ownable])
        class Counter:
            Error = Err

            @init
            def new(ctx, start: int) -> Response:
                return Response()

            @execute
            def add(ctx, _by: int) -> Response:
                return Response()

            @execute_guard
            def guard(ctx, msg) -> None:
                pass

            @query
            def owner(ctx) -> str:
                return "me"

            def helper(x):
                return x

        @contract(components=[Counter], error=Err, entry=True)
        class App:
            pass
        """
    )
    assert [i.name for i in program.interfaces] == ["Ownable"]
    counter = program.component("Counter")
    assert counter is not None and counter.key == "counter"
    assert [m.name for m in counter.methods] == ["new", "add", "guard", "owner"]
    add = counter.by_role(Role.EXECUTE)[0]
    assert [(p.name, p.field, p.type) for p in add.params] == [("_by", "by", "int")]
    owner = counter.by_role(Role.QUERY)[0]
    assert owner.origin.interface == "Ownable"
    assert add.origin.interface is None
    assert program.contract is not None and program.contract.entry
    assert program.contract.error == "Err"


def test_handle_is_an_alias_of_execute() -> None:
    program = compile_ok(
        """
        from compose_py.dsl import handle

        @component
        class A:
            @handle
            def poke(ctx) -> Response:
                return Response()
        """
    )
    assert program.component("A").by_role(Role.EXECUTE)[0].name == "poke"


def test_module_without_contract_is_valid() -> None:
    program = compile_ok(
        """
        @component
        class A:
            @query
            def get(ctx) -> int:
                return 1
        """
    )
    assert program.contract is None
    assert program.entry_contracts() == []


# --- Diagnostic completeness ---------------------------------------------------


def test_all_violations_are_reported_in_one_pass() -> None:
    codes = compile_bad(
        """
        @component
        class A:
            @init
            def one(ctx) -> Response:
                return Response()

            @init
            def two(ctx) -> Response:
                return Response()

        @component
        class B:
            @init
            def one(ctx) -> Response:
                return Response()

            @init
            def two(ctx) -> Response:
                return Response()

        @component
        @sparkle
        class C:
            pass
        """
    )
    assert sorted(codes) == ["CP101", "CP120", "CP120"]


def test_diagnostics_follow_declaration_order() -> None:
    codes = compile_bad(
        """
        @component
        class A:
            @execute
            def add(self, x: int) -> Response:
                return Response()

        @component(colour="red")
        class B:
            @query
            def get(ctx):
                return 1
        """
    )
    assert codes == ["CP110", "CP101", "CP111"]


# --- One violation, one diagnostic ----------------------------------------------


@pytest.mark.parametrize(
    "src,code",
    [
        (
            """
            @component
            @frozen
            class A:
                pass
            """,
            "CP101",
        ),
        (
            """
            @component(colour="red")
            class A:
                pass
            """,
            "CP101",
        ),
        (
            """
            @component
            class A:
                @execute
                @cached
                def add(ctx, x: int) -> Response:
                    return Response()
            """,
            "CP101",
        ),
        (
            """
            @component(skip=["init"])
            class A:
                pass
            """,
            "CP102",
        ),
        (
            """
            @component(path="not a name")
            class A:
                pass
            """,
            "CP102",
        ),
        (
            """
            @component
            class A:
                @execute(fast=True)
                def add(ctx) -> Response:
                    return Response()
            """,
            "CP102",
        ),
        (
            """
            @component
            class A:
                pass

            @contract(components=[A], error=Err, skip=["query"])
            class App:
                pass
            """,
            "CP103",
        ),
        (
            """
            from compose_py.dsl import path

            @component
            @path
            class A:
                pass
            """,
            "CP103",
        ),
        (
            """
            @execute
            def loose(ctx) -> Response:
                return Response()
            """,
            "CP103",
        ),
        (
            """
            @component
            class A:
                @init
                def new(ctx) -> Response:
                    return Response()

            @contract(components=[A], error=Err)
            class App:
                @execute
                def extra(ctx) -> Response:
                    return Response()
            """,
            "CP103",
        ),
        (
            """
            @entry
            @interface
            class I:
                Error = Err
            """,
            "CP103",
        ),
        (
            """
            @component
            @component
            class A:
                pass
            """,
            "CP104",
        ),
        (
            """
            @component
            class A:
                @execute
                @query
                def add(ctx) -> Response:
                    return Response()
            """,
            "CP104",
        ),
        (
            """
            @component
            class A:
                pass

            @component
            class A:
                pass
            """,
            "CP105",
        ),
        (
            """
            @component
            class A:
                @execute
                async def add(ctx) -> Response:
                    return Response()
            """,
            "CP110",
        ),
        (
            """
            @component
            class A:
                @execute
                def add(ctx, x) -> Response:
                    return Response()
            """,
            "CP110",
        ),
        (
            """
            @component
            class A:
                @execute
                def add(ctx, x: int = 1) -> Response:
                    return Response()
            """,
            "CP110",
        ),
        (
            """
            @component
            class A:
                @execute
                def add(ctx, *xs: int) -> Response:
                    return Response()
            """,
            "CP110",
        ),
        (
            """
            @component
            class A:
                @execute
                def add(ctx, x: int, _x: int) -> Response:
                    return Response()
            """,
            "CP110",
        ),
        (
            """
            @component
            class A:
                @execute_guard
                def guard(ctx) -> None:
                    pass
            """,
            "CP110",
        ),
        (
            """
            @component
            class A:
                @execute
                def add(ctx, x: int) -> int:
                    return x
            """,
            "CP111",
        ),
        (
            """
            @component
            class A:
                @execute_guard
                def guard(ctx, msg) -> bool:
                    return True
            """,
            "CP111",
        ),
        (
            """
            @component
            class A:
                @init
                def one(ctx) -> Response:
                    return Response()

                @init
                def two(ctx) -> Response:
                    return Response()
            """,
            "CP120",
        ),
        (
            """
            @component
            class A:
                @execute_guard
                def g1(ctx, msg) -> None:
                    pass

                @execute_guard
                def g2(ctx, msg) -> None:
                    pass
            """,
            "CP121",
        ),
        (
            """
            @component
            class A:
                @execute
                def add(ctx) -> Response:
                    return Response()

                @execute
                def add(ctx) -> Response:
                    return Response()
            """,
            "CP122",
        ),
        (
            """
            @interface
            class I:
                Error = Err

                @execute
                def ping(ctx) -> Response:
                    return Response()
            """,
            "CP130",
        ),
        (
            """
            @interface
            class I:
                @execute
                def ping(ctx) -> Response: ...
            """,
            "CP131",
        ),
        (
            """
            @interface
            class I:
                Error = Err

                def ping(ctx) -> Response: ...
            """,
            "CP132",
        ),
        (
            """
            @interface
            class I:
                Error = Err

                @execute
                def ping(ctx) -> Response: ...

            @component(implements=[I])
            class A:
                pass
            """,
            "CP140",
        ),
        (
            """
            @interface
            class I:
                Error = Err

                @execute
                def ping(ctx) -> Response: ...

            @component(implements=[I])
            class A:
                @execute
                def ping(ctx, loud: bool) -> Response:
                    return Response()
            """,
            "CP141",
        ),
        (
            """
            @component(implements=[Nope])
            class A:
                pass
            """,
            "CP142",
        ),
        (
            """
            @interface
            class I:
                Error = Err

                @query
                def ping(ctx) -> int: ...

            @interface
            class J:
                Error = Err

                @query
                def ping(ctx) -> int: ...

            @component(implements=[I, J])
            class A:
                @query
                def ping(ctx) -> int:
                    return 1
            """,
            "CP143",
        ),
        (
            """
            @component(custom_impl=["nope"])
            class A:
                @execute
                def add(ctx) -> Response:
                    return Response()
            """,
            "CP144",
        ),
        (
            """
            class Other(Exception):
                pass

            @component
            class A:
                Error = Other

                @init
                def new(ctx) -> Response:
                    return Response()

            @contract(components=[A], error=Err)
            class App:
                pass
            """,
            "CP150",
        ),
        (
            """
            @component
            class A:
                pass

            @contract(components=[A], error=Missing)
            class App:
                pass
            """,
            "CP151",
        ),
        (
            """
            @component
            class A:
                pass

            @contract(components=[A], error=Err)
            class One:
                pass

            @contract(components=[A], error=Err)
            class Two:
                pass
            """,
            "CP160",
        ),
        (
            """
            @component
            class A:
                pass

            @contract(components=[A, B], error=Err)
            class App:
                pass
            """,
            "CP161",
        ),
        (
            """
            @component
            class A:
                pass

            @contract(components=[A, A], error=Err)
            class App:
                pass
            """,
            "CP162",
        ),
        (
            """
            @component
            class A:
                pass

            @contract(components=[A])
            class App:
                pass
            """,
            "CP163",
        ),
        (
            """
            @component(entry=True)
            class A:
                pass
            """,
            "CP163",
        ),
    ],
)
def test_single_violation_yields_single_diagnostic(src: str, code: str) -> None:
    assert compile_bad(src) == [code]


# --- Error families --------------------------------------------------------------


def test_init_error_in_contract_family_is_accepted() -> None:
    program = compile_ok(
        """
        class VaultError(Err):
            pass

        class DeepError(VaultError):
            pass

        @component
        class A:
            Error = DeepError

            @init
            def new(ctx) -> Response:
                return Response()

        @contract(components=[A], error=Err, entry=True)
        class App:
            pass
        """
    )
    assert program.contract.error == "Err"


def test_builtin_exception_resolves_as_error_type() -> None:
    program = compile_ok(
        """
        @component(entry=True)
        class A:
            Error = ValueError

            @execute
            def poke(ctx) -> Response:
                return Response()
        """
    )
    [alone] = program.entry_contracts()
    assert alone.name == "A" and alone.error == "ValueError"


# --- custom_impl -----------------------------------------------------------------


def test_custom_impl_synthesizes_missing_interface_method() -> None:
    program = compile_ok(
        """
        @interface
        class I:
            Error = Err

            @query
            def ping(ctx, n: int) -> int: ...

        @component(implements=[I], custom_impl=["ping"])
        class A:
            pass
        """
    )
    [ping] = program.component("A").methods
    assert ping.custom and ping.origin.interface == "I"
    assert [p.field for p in ping.params] == ["n"]


def test_custom_impl_true_marks_every_method() -> None:
    program = compile_ok(
        """
        @component(custom_impl=True)
        class A:
            @execute
            def add(ctx) -> Response: ...

            @query
            def get(ctx) -> int: ...
        """
    )
    assert all(m.custom for m in program.component("A").methods)
