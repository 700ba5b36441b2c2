from __future__ import annotations

from pathlib import Path
from textwrap import dedent

import pytest

from witffi.codegen import generate_world
from witffi.loader import load_wit_text

EIP681_WIT = """
package eip681:ffi@0.1.0;

/// Parsing of EIP-681 payment request URIs.
interface parser {
    /// A native-token transfer request.
    record native-request {
        chain-id: option<u64>,
        recipient-address: string,
        value-atomic: option<list<u8>>,
    }

    record erc20-request {
        chain-id: option<u64>,
        token-contract-address: string,
        recipient-address: string,
        value-atomic: option<list<u8>>,
    }

    variant transaction-request {
        native(native-request),
        erc20(erc20-request),
        unrecognised,
    }

    enum network {
        mainnet,
        sepolia,
    }

    flags capabilities {
        transfer,
        approve,
    }

    /// Parse a request URI.
    parse: func(input: string) -> result<transaction-request, string>;
    to-uri: func(request: transaction-request) -> string;
    network-of: func(request: native-request) -> network;
    version: func() -> string;
}

world eip681 {
    export parser;
}
"""


@pytest.fixture
def eip681_wit() -> str:
    return EIP681_WIT


@pytest.fixture
def write_wit(tmp_path: Path):
    def _write(content: str, name: str = "world.wit") -> Path:
        file_path = tmp_path / name
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(dedent(content))
        return file_path

    return _write


@pytest.fixture
def load_world():
    def _load(content: str):
        _, world = load_wit_text(dedent(content))
        return world

    return _load


@pytest.fixture
def generate(load_world):
    """Generate from WIT text; returns the GenerationResult."""

    def _generate(content: str, **config):
        return generate_world(load_world(content), "rust", config or None)

    return _generate


@pytest.fixture
def eip681_result(generate, eip681_wit):
    result = generate(eip681_wit)
    assert result.success, result.error_message
    return result
