from __future__ import annotations

from collections.abc import Callable

import platgen

GUARD = 'any(target_os = "linux", target_os = "macos", target_os = "windows")'


def _param(name: str, ty: str = "i32", **kwargs: object) -> platgen.Param:
    return platgen.Param(pattern=name, ty=ty, **kwargs)


def test_t_01_impl_name_is_a_plain_suffix() -> None:
    assert platgen.impl_name("reboot") == "reboot_impl"
    assert platgen.impl_name("reboot", suffix="_sys") == "reboot_sys"


def test_t_02_receiver_two_params_unit_return_is_statement_call(
    make_callable: Callable[..., platgen.CallableDecl],
) -> None:
    decl = make_callable(params=(_param("a"), _param("b")))

    wrapper, diagnostics = platgen.transform(decl, GUARD)

    assert diagnostics == []
    assert wrapper is not None
    assert wrapper.guard == GUARD
    assert wrapper.forward == platgen.ForwardCall(
        target="Self::reboot_impl",
        generic_args=(),
        args=("self", "a", "b"),
        awaited=False,
        unsafe_scope=False,
        statement=True,
    )
    assert wrapper.forward.render() == "Self::reboot_impl(self, a, b);"


def test_t_03_async_value_return_is_awaited_tail_expression(
    make_callable: Callable[..., platgen.CallableDecl],
) -> None:
    decl = make_callable(
        params=(_param("a"), _param("b")), is_async=True, output="u8"
    )

    wrapper, _ = platgen.transform(decl, GUARD)

    assert wrapper is not None
    assert wrapper.forward.awaited is True
    assert wrapper.forward.statement is False
    assert wrapper.forward.render() == "Self::reboot_impl(self, a, b).await"


def test_t_04_async_unit_return_awaits_then_terminates(
    make_callable: Callable[..., platgen.CallableDecl],
) -> None:
    wrapper, _ = platgen.transform(make_callable(is_async=True), GUARD)

    assert wrapper.forward.render() == "Self::reboot_impl(self).await;"


def test_t_05_mut_and_ref_modifiers_are_stripped_from_call(
    make_callable: Callable[..., platgen.CallableDecl],
) -> None:
    decl = make_callable(
        "process",
        params=(_param("value", mutable=True), _param("factor", by_ref=True)),
        output="i32",
    )

    wrapper, diagnostics = platgen.transform(decl, GUARD)

    assert diagnostics == []
    assert wrapper.forward.args == ("self", "value", "factor")


def test_t_06_lifetimes_skipped_type_and_const_forwarded_in_order(
    make_callable: Callable[..., platgen.CallableDecl],
) -> None:
    generics = platgen.Generics(
        params=(
            platgen.GenericParam(kind="type", name="T", bounds=("Clone",)),
            platgen.GenericParam(kind="lifetime", name="'a"),
            platgen.GenericParam(kind="const", name="N", const_type="usize"),
            platgen.GenericParam(kind="type", name="U"),
        )
    )
    decl = make_callable("wrap", generics=generics, params=(_param("item", "&'a T"),))

    wrapper, _ = platgen.transform(decl, GUARD)

    assert wrapper.forward.generic_args == ("T", "N", "U")
    assert wrapper.forward.render() == "Self::wrap_impl::<T, N, U>(self, item);"


def test_t_07_lifetime_only_generics_produce_no_turbofish(
    make_callable: Callable[..., platgen.CallableDecl],
) -> None:
    generics = platgen.Generics(params=(platgen.GenericParam(kind="lifetime", name="'a"),))

    wrapper, _ = platgen.transform(make_callable(generics=generics), GUARD)

    assert wrapper.forward.generic_args == ()
    assert "::<" not in wrapper.forward.render()


def test_t_08_unsafe_wraps_call_in_unsafe_scope(
    make_callable: Callable[..., platgen.CallableDecl],
) -> None:
    unit, _ = platgen.transform(make_callable(is_unsafe=True), GUARD)
    value, _ = platgen.transform(make_callable(is_unsafe=True, output="i32"), GUARD)

    assert unit.forward.render() == "unsafe { Self::reboot_impl(self); }"
    assert value.forward.render() == "unsafe { Self::reboot_impl(self) }"
    assert value.decl.sig.is_unsafe is True


def test_t_09_async_unsafe_compose(
    make_callable: Callable[..., platgen.CallableDecl],
) -> None:
    wrapper, _ = platgen.transform(
        make_callable(is_async=True, is_unsafe=True, output="u8"), GUARD
    )

    assert wrapper.forward.render() == "unsafe { Self::reboot_impl(self).await }"


def test_t_10_no_receiver_still_uses_self_path(
    make_callable: Callable[..., platgen.CallableDecl],
) -> None:
    wrapper, _ = platgen.transform(
        make_callable("new", receiver=None, params=(_param("id", "u32"),), output="Self"),
        GUARD,
    )

    assert wrapper.forward.render() == "Self::new_impl(id)"


def test_t_11_complex_patterns_reported_and_skipped_but_wrapper_kept(
    make_callable: Callable[..., platgen.CallableDecl],
) -> None:
    tuple_loc = platgen.SourceLocation(4, 20)
    wild_loc = platgen.SourceLocation(4, 40)
    decl = make_callable(
        params=(
            _param("(x, y)", "(i32, i32)", location=tuple_loc),
            _param("kept"),
            _param("_", location=wild_loc),
        )
    )

    wrapper, diagnostics = platgen.transform(decl, GUARD)

    assert wrapper is not None
    assert wrapper.forward.args == ("self", "kept")
    assert diagnostics == [
        platgen.Diagnostic(
            f"{platgen.COMPLEX_PATTERN_MESSAGE}; found `(x, y)`", tuple_loc
        ),
        platgen.Diagnostic(f"{platgen.COMPLEX_PATTERN_MESSAGE}; found `_`", wild_loc),
    ]


def test_t_12_variadic_produces_only_diagnostics(
    make_callable: Callable[..., platgen.CallableDecl],
) -> None:
    variadic_loc = platgen.SourceLocation(9, 31)
    decl = make_callable(
        params=(_param("Point { x, y }", "Point"),),
        variadic=platgen.Variadic(name="args", location=variadic_loc),
    )

    wrapper, diagnostics = platgen.transform(decl, GUARD)

    assert wrapper is None
    assert [d.message for d in diagnostics] == [
        f"{platgen.COMPLEX_PATTERN_MESSAGE}; found `Point {{ x, y }}`",
        f"{platgen.VARIADIC_MESSAGE}; found `args: ...`",
    ]
    assert diagnostics[-1].location == variadic_loc


def test_t_13_declaration_with_body_is_plain_conditional(
    make_callable: Callable[..., platgen.CallableDecl],
) -> None:
    decl = make_callable(body="{ 42 }", output="u8", variadic=None)

    wrapper, diagnostics = platgen.transform(decl, GUARD)

    assert diagnostics == []
    assert wrapper == platgen.GuardedFn(guard=GUARD, decl=decl)
    assert wrapper.forward is None


def test_t_14_transform_does_not_mutate_input(
    make_callable: Callable[..., platgen.CallableDecl],
) -> None:
    decl = make_callable(params=(_param("a", mutable=True),))
    snapshot = repr(decl)

    wrapper, _ = platgen.transform(decl, GUARD)

    assert repr(decl) == snapshot
    assert wrapper.decl is decl


def test_t_15_trait_fn_attaches_guard_only(
    make_callable: Callable[..., platgen.CallableDecl],
) -> None:
    decl = make_callable("get_wm_name", vis="", output="String")

    guarded = platgen.transform_trait_fn(decl, 'target_os = "linux"')

    assert guarded == platgen.GuardedFn(guard='target_os = "linux"', decl=decl)


def test_t_16_raw_identifier_parameter_is_simple() -> None:
    assert platgen.Param(pattern="r#type", ty="u8").is_simple
    assert not platgen.Param(pattern="_", ty="u8").is_simple
    assert not platgen.Param(pattern="&x", ty="&u8").is_simple


def test_t_17_rejected_constructs_are_named_in_messages(
    make_callable: Callable[..., platgen.CallableDecl],
) -> None:
    decl = make_callable(
        params=(_param("(x, y)", "(i32, i32)"), _param("Point { a, b }", "Point")),
        variadic=platgen.Variadic(name="rest"),
    )

    _, diagnostics = platgen.transform(decl, GUARD)

    assert len(set(diagnostics)) == 3
    assert "`(x, y)`" in diagnostics[0].message
    assert "`Point { a, b }`" in diagnostics[1].message
    assert "`rest: ...`" in diagnostics[2].message
