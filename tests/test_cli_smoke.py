import subprocess
import sys


def _help(*args: str) -> str:
    cp = subprocess.run(
        [sys.executable, "-m", "haplofrac", *args, "--help"],
        check=True,
        capture_output=True,
        text=True,
    )
    return cp.stdout


def test_cli_help() -> None:
    out = _help()
    for cmd in ("quickstart", "make-toy-data", "call"):
        assert cmd in out


def test_call_help_lists_inference_options() -> None:
    out = _help("call")
    for flag in ("--haplotype-variants", "--variant-calls", "--prior", "--lp-solver", "--afd-scale"):
        assert flag in out
    assert "diploid" in out and "uniform" in out
