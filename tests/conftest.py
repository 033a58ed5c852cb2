"""Shared fixtures: a small template store and an empty working directory."""

from pathlib import Path

import pytest

DOCKERFILE = b"FROM rust:1.75\nWORKDIR /app\nCOPY . .\n"
GITLAB_CI = "image: {{ name }}\nstages:\n  - build\n"
MAIN_RS = "// {{ pascal_name }}\nfn main() {}\n"
LOGO = b"\x89PNG\r\n\x1a\n\x00\x00{{ name }}"


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    root = tmp_path / "templates"

    rust = root / "template-rust-wasm-http"
    (rust / "src").mkdir(parents=True)
    (rust / "Dockerfile").write_bytes(DOCKERFILE)
    (rust / ".gitlab-ci.yaml.tt").write_text(GITLAB_CI)
    (rust / "src" / "main.rs.tt").write_text(MAIN_RS)
    (rust / "logo.png").write_bytes(LOGO)
    (rust / "kicklets.yml").write_text(
        "kicklets:\n"
        "  ci-pipeline:\n"
        "    - .gitlab-ci.yaml\n"
        "    - Dockerfile\n"
        "  app:\n"
        "    - src/main.rs\n"
    )

    python = root / "template-python"
    python.mkdir()
    (python / "README.md.tt").write_text("# {{ title }}\n")
    (python / ".DS_Store").write_bytes(b"\x00\x00")

    return root


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    monkeypatch.chdir(path)
    return path
