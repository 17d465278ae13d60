"""
Bank example: two components composed into one entry contract.

Vault keeps per-sender balances:

    init    {"vault": {"initial": "100"}}
    execute {"deposit": {"amount": "5"}}
    execute {"withdraw": {"amount": "3"}}
    query   {"balance": {"owner": "alice"}}   -> "102"

Admin implements Ownable and can pause the vault. Its guard rejects every
execute message except `set_paused` while paused. The `admin` query is marked
custom_impl, so the host supplies it through overrides:

    entry = bind({"Vault": Vault, "Admin": Admin}, overrides={"Admin": MyAdminQueries()})
"""

from __future__ import annotations

from compose_py.dsl import component, contract, execute, execute_guard, init, interface, query, Uint128
from compose_py.runtime import Context, Event, Response


class BankError(Exception):
    pass


class VaultError(BankError):
    pass


class AdminError(BankError):
    pass


K_ADMIN = b"admin"
K_PAUSED = b"paused"


def _amount(value: Uint128) -> int:
    n = int(value)
    if n <= 0:
        raise VaultError(f"amount must be positive, got {value}")
    return n


def _balance_key(owner: str) -> bytes:
    return b"balance:" + owner.encode("utf-8")


def _read_balance(ctx: Context, owner: str) -> int:
    raw = ctx.load(_balance_key(owner))
    return int(raw) if raw else 0


@interface
class Ownable:
    Error = AdminError

    @execute
    def change_admin(ctx: Context, new_admin: str) -> Response: ...

    @query
    def admin(ctx: Context) -> str: ...


@component(path="vault")
class Vault:
    Error = VaultError

    @init
    def new(ctx: Context, initial: Uint128) -> Response:
        ctx.save(_balance_key(ctx.sender), str(int(initial)))
        return Response().add_attribute("action", "vault_init")

    @execute
    def deposit(ctx: Context, amount: Uint128) -> Response:
        total = _read_balance(ctx, ctx.sender) + _amount(amount)
        ctx.save(_balance_key(ctx.sender), str(total))
        return (
            Response()
            .add_attribute("action", "deposit")
            .add_event(Event("deposit").add_attribute("owner", ctx.sender).add_attribute("amount", amount))
        )

    @execute
    def withdraw(ctx: Context, amount: Uint128) -> Response:
        current = _read_balance(ctx, ctx.sender)
        n = _amount(amount)
        if n > current:
            raise VaultError(f"insufficient funds: {current} < {n}")
        ctx.save(_balance_key(ctx.sender), str(current - n))
        return Response().add_attribute("action", "withdraw").set_data(str(current - n).encode("utf-8"))

    @query
    def balance(ctx: Context, owner: str) -> Uint128:
        return str(_read_balance(ctx, owner))


@component(path="admin", implements=[Ownable], custom_impl=["admin"])
class Admin:
    Error = AdminError

    @init
    def setup(ctx: Context, admin: str) -> Response:
        ctx.save(K_ADMIN, admin)
        return Response().add_attribute("admin", admin)

    @execute_guard
    def not_paused(ctx: Context, msg) -> None:
        if ctx.load(K_PAUSED) == b"1" and msg.key != "set_paused":
            raise AdminError("contract is paused")

    @execute
    def change_admin(ctx: Context, new_admin: str) -> Response:
        _only_admin(ctx)
        ctx.save(K_ADMIN, new_admin)
        return Response().add_attribute("admin", new_admin)

    @execute
    def set_paused(ctx: Context, paused: bool) -> Response:
        _only_admin(ctx)
        ctx.save(K_PAUSED, b"1" if paused else b"0")
        return Response().add_attribute("paused", str(paused).lower())


def _only_admin(ctx: Context) -> None:
    if ctx.load(K_ADMIN) != (ctx.sender or "").encode("utf-8"):
        raise AdminError("unauthorized")


@contract(components=[Vault, Admin], error=BankError, entry=True)
class Bank:
    pass
