import argparse
import sys
import xml.etree.ElementTree as ET
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import platgen  # noqa: E402


@pytest.fixture
def existing_paths(tmp_path: Path) -> dict[str, Path]:
    manifest = tmp_path / "decls.xml"
    manifest.write_text("<manifest />\n", encoding="utf-8")
    return {
        "input": manifest,
        "output": tmp_path / "out" / "platform_gen.rs",
    }


@pytest.fixture
def make_args(existing_paths: dict[str, Path]) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "input": existing_paths["input"],
            "output": existing_paths["output"],
            "list_platforms": False,
            "resolve": None,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args


@pytest.fixture
def make_manifest_root() -> Callable[[str], ET.Element]:
    def _make_manifest_root(inner_xml: str) -> ET.Element:
        return ET.fromstring(f"<manifest>{inner_xml}</manifest>")

    return _make_manifest_root


@pytest.fixture
def make_signature() -> Callable[..., platgen.FnSignature]:
    def _make_signature(
        name: str = "reboot",
        *,
        params: tuple[platgen.Param, ...] = (),
        receiver: platgen.Receiver | None = platgen.Receiver(),
        generics: platgen.Generics = platgen.Generics(),
        output: str | None = None,
        is_async: bool = False,
        is_unsafe: bool = False,
        variadic: platgen.Variadic | None = None,
    ) -> platgen.FnSignature:
        return platgen.FnSignature(
            name=name,
            generics=generics,
            receiver=receiver,
            params=params,
            variadic=variadic,
            output=output,
            is_async=is_async,
            is_unsafe=is_unsafe,
        )

    return _make_signature


@pytest.fixture
def make_callable(
    make_signature: Callable[..., platgen.FnSignature],
) -> Callable[..., platgen.CallableDecl]:
    def _make_callable(
        name: str = "reboot",
        *,
        vis: str = "pub",
        body: str | None = None,
        **sig_overrides: object,
    ) -> platgen.CallableDecl:
        return platgen.CallableDecl(
            sig=make_signature(name, **sig_overrides),
            vis=vis,
            body=body,
        )

    return _make_callable
