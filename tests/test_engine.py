"""Tests for the copy-and-relocate engine."""

import pathlib

import pytest

from app_bundler.engine import copy_dynamic_library_dependencies
from app_bundler.errors import CopyFailed, EnumerationFailed, UnresolvableLibrary
from app_bundler.platforms import WINDOWS
from tests.fakes import FakeRunner, make_context, make_platform, touch


@pytest.fixture
def bundle(tmp_path: pathlib.Path) -> dict[str, pathlib.Path]:
    products = tmp_path / "products"
    lib_dir = tmp_path / "App.generic" / "usr" / "lib"
    exe = touch(tmp_path / "App.generic" / "usr" / "bin" / "App")
    products.mkdir()
    lib_dir.mkdir(parents=True)
    return {"products": products, "lib": lib_dir, "exe": exe}


def _listing(lib_dir: pathlib.Path) -> list[str]:
    return sorted(p.name for p in lib_dir.iterdir())


def test_acyclic_dependencies_copied_once(bundle: dict[str, pathlib.Path]) -> None:
    """Verify every bundled library lands in the library directory exactly once."""
    for name in ("libA.so", "libB.so", "libC.so"):
        touch(bundle["products"] / name, name.encode())
    platform, _, _ = make_platform(
        {"App": ["libA.so", "libB.so"], "libA.so": ["libC.so"], "libB.so": ["libC.so"]}
    )

    records = copy_dynamic_library_dependencies(
        bundle["exe"],
        destination_dir=bundle["lib"],
        products_dir=bundle["products"],
        platform=platform,
        context=make_context(),
    )

    assert [r.destination.name for r in records] == ["libA.so", "libB.so", "libC.so"]
    assert _listing(bundle["lib"]) == ["libA.so", "libB.so", "libC.so"]
    assert (bundle["lib"] / "libC.so").read_bytes() == b"libC.so"


def test_cycle_terminates(bundle: dict[str, pathlib.Path]) -> None:
    """Verify A -> B -> A copies both once and stops."""
    touch(bundle["products"] / "libA.so")
    touch(bundle["products"] / "libB.so")
    platform, enumerator, _ = make_platform(
        {"App": ["libA.so"], "libA.so": ["libB.so"], "libB.so": ["libA.so"]}
    )

    records = copy_dynamic_library_dependencies(
        bundle["exe"],
        destination_dir=bundle["lib"],
        products_dir=bundle["products"],
        platform=platform,
        context=make_context(),
    )

    assert sorted(r.destination.name for r in records) == ["libA.so", "libB.so"]
    assert [b.name for b in enumerator.calls] == ["App", "libA.so", "libB.so"]


def test_diamond_copies_shared_dependency_once(bundle: dict[str, pathlib.Path]) -> None:
    """Verify root -> B, C -> D copies D a single time."""
    for name in ("libB.so", "libC.so", "libD.so"):
        touch(bundle["products"] / name)
    platform, enumerator, _ = make_platform(
        {"App": ["libB.so", "libC.so"], "libB.so": ["libD.so"], "libC.so": ["libD.so"]}
    )

    records = copy_dynamic_library_dependencies(
        bundle["exe"],
        destination_dir=bundle["lib"],
        products_dir=bundle["products"],
        platform=platform,
        context=make_context(),
    )

    assert [r.destination.name for r in records].count("libD.so") == 1
    assert [b.name for b in enumerator.calls].count("libD.so") == 1


def test_rerun_with_populated_visited_set_is_noop(bundle: dict[str, pathlib.Path]) -> None:
    """Verify passing the same visited set again copies nothing."""
    touch(bundle["products"] / "libA.so")
    platform, _, _ = make_platform({"App": ["libA.so"]})
    visited: set[pathlib.Path] = set()
    kwargs = dict(
        destination_dir=bundle["lib"],
        products_dir=bundle["products"],
        platform=platform,
        context=make_context(),
        visited=visited,
    )

    first = copy_dynamic_library_dependencies(bundle["exe"], **kwargs)
    second = copy_dynamic_library_dependencies(bundle["exe"], **kwargs)

    assert len(first) == 1
    assert second == []
    assert visited == {bundle["lib"] / "libA.so"}


def test_skipped_library_is_not_copied(bundle: dict[str, pathlib.Path]) -> None:
    """Verify libraries neither built nor allow-listed stay out of the bundle."""
    touch(bundle["products"] / "libA.so")
    platform, _, _ = make_platform({"App": ["libgtk-3.so.0", "libA.so"]})

    copy_dynamic_library_dependencies(
        bundle["exe"],
        destination_dir=bundle["lib"],
        products_dir=bundle["products"],
        platform=platform,
        context=make_context(),
    )

    assert _listing(bundle["lib"]) == ["libA.so"]


def test_allow_listed_library_copied_from_search_path(
    bundle: dict[str, pathlib.Path], tmp_path: pathlib.Path
) -> None:
    """Verify allow-listed libraries are picked up from the host search path."""
    toolchain = tmp_path / "toolchain"
    touch(toolchain / "libswiftCore.so", b"core")
    platform, _, _ = make_platform({"App": ["libswiftCore.so"]}, allow={"libswiftCore.so"})

    records = copy_dynamic_library_dependencies(
        bundle["exe"],
        destination_dir=bundle["lib"],
        products_dir=bundle["products"],
        platform=platform,
        context=make_context(environ={"TEST_LIB_PATH": str(toolchain)}),
    )

    assert records[0].source == (toolchain / "libswiftCore.so").resolve()
    assert (bundle["lib"] / "libswiftCore.so").read_bytes() == b"core"


def test_unresolvable_library_aborts(bundle: dict[str, pathlib.Path]) -> None:
    """Verify an allow-listed library missing everywhere aborts the run."""
    platform, _, relocator = make_platform({"App": ["libswiftCore.so"]}, allow={"libswiftCore.so"})

    with pytest.raises(UnresolvableLibrary) as excinfo:
        copy_dynamic_library_dependencies(
            bundle["exe"],
            destination_dir=bundle["lib"],
            products_dir=bundle["products"],
            platform=platform,
            context=make_context(),
        )

    assert excinfo.value.name == "libswiftCore.so"
    assert relocator.calls == []
    assert _listing(bundle["lib"]) == []


def test_unresolvable_transitive_library_aborts(bundle: dict[str, pathlib.Path]) -> None:
    """Verify a failure deep in the closure still aborts and skips the final rewrite."""
    touch(bundle["products"] / "libA.so")
    platform, _, relocator = make_platform(
        {"App": ["libA.so"], "libA.so": ["libFoundation.so"]}, allow={"libFoundation.so"}
    )

    with pytest.raises(UnresolvableLibrary):
        copy_dynamic_library_dependencies(
            bundle["exe"],
            destination_dir=bundle["lib"],
            products_dir=bundle["products"],
            platform=platform,
            context=make_context(),
        )

    assert bundle["exe"] not in [binary for binary, _ in relocator.calls]


def test_symlinked_library_copied_as_real_file(bundle: dict[str, pathlib.Path]) -> None:
    """Verify symlinks are resolved and the referenced name is kept."""
    real = touch(bundle["products"] / "libA.so.1.2.3", b"real")
    (bundle["products"] / "libA.so.1").symlink_to(real.name)
    platform, _, _ = make_platform({"App": ["libA.so.1"]})

    records = copy_dynamic_library_dependencies(
        bundle["exe"],
        destination_dir=bundle["lib"],
        products_dir=bundle["products"],
        platform=platform,
        context=make_context(),
    )

    dest = bundle["lib"] / "libA.so.1"
    assert dest.is_symlink() is False
    assert dest.read_bytes() == b"real"
    assert records[0].source == real.resolve()


def test_debug_info_copied_when_present(bundle: dict[str, pathlib.Path]) -> None:
    """Verify the debug-info companion is copied alongside the library."""
    touch(bundle["products"] / "libA.so")
    touch(bundle["products"] / "libA.so.debug", b"dwarf")
    touch(bundle["products"] / "libB.so")
    platform, _, _ = make_platform({"App": ["libA.so", "libB.so"]})

    copy_dynamic_library_dependencies(
        bundle["exe"],
        destination_dir=bundle["lib"],
        products_dir=bundle["products"],
        platform=platform,
        context=make_context(),
    )

    assert (bundle["lib"] / "libA.so.debug").read_bytes() == b"dwarf"
    assert (bundle["lib"] / "libB.so.debug").exists() is False


def test_search_paths_rewritten(bundle: dict[str, pathlib.Path]) -> None:
    """Verify copied libraries point at their own directory and the executable last."""
    touch(bundle["products"] / "libA.so")
    platform, _, relocator = make_platform({"App": ["libA.so"]})

    copy_dynamic_library_dependencies(
        bundle["exe"],
        destination_dir=bundle["lib"],
        products_dir=bundle["products"],
        platform=platform,
        context=make_context(),
    )

    assert relocator.calls == [
        (bundle["lib"] / "libA.so", bundle["lib"]),
        (bundle["exe"], bundle["lib"]),
    ]


def test_copy_failure_raises(bundle: dict[str, pathlib.Path]) -> None:
    """Verify a copy into a missing directory surfaces as CopyFailed."""
    touch(bundle["products"] / "libA.so")
    platform, _, _ = make_platform({"App": ["libA.so"]})
    missing = bundle["lib"] / "does-not-exist"

    with pytest.raises(CopyFailed) as excinfo:
        copy_dynamic_library_dependencies(
            bundle["exe"],
            destination_dir=missing,
            products_dir=bundle["products"],
            platform=platform,
            context=make_context(),
        )
    assert excinfo.value.destination == missing / "libA.so"


def test_windows_closure_with_dumpbin(tmp_path: pathlib.Path) -> None:
    """Verify the real Windows platform walks DLLs reported by dumpbin."""
    products = tmp_path / "products"
    root = tmp_path / "App.generic"
    touch(products / "MyKit.dll")
    touch(products / "MyKit.pdb", b"pdb")
    exe = touch(root / "App.exe")
    output = "  Image has the following dependencies:\n\n    MyKit.dll\n    KERNEL32.dll\n\n"
    runner = FakeRunner(outputs={"dumpbin": output})

    records = copy_dynamic_library_dependencies(
        exe,
        destination_dir=root,
        products_dir=products,
        platform=WINDOWS,
        context=make_context(runner=runner),
    )

    assert [r.destination for r in records] == [root / "MyKit.dll"]
    assert (root / "MyKit.pdb").read_bytes() == b"pdb"
    # App.exe, then MyKit.dll itself (whose listing names itself and is skipped as visited).
    assert [c[0][2] for c in runner.calls] == [str(exe), str(root / "MyKit.dll")]


def test_enumeration_failure_propagates(bundle: dict[str, pathlib.Path]) -> None:
    """Verify a failing listing tool aborts the run."""
    with pytest.raises(EnumerationFailed):
        copy_dynamic_library_dependencies(
            bundle["exe"],
            destination_dir=bundle["lib"],
            products_dir=bundle["products"],
            platform=WINDOWS,
            context=make_context(runner=FakeRunner(fail={"dumpbin"})),
        )
