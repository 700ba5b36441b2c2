"""
Tests for the Rust generator: the C header and the Rust scaffolding it
produces, checked as text.
"""

import re

import pytest

from witffi.codegen import quick_generate
from witffi.codegen.core.errors import NamingCollision
from witffi.codegen.languages.rust import RustGenerator, create_generator


def _block(text, start):
    """The lines from ``start`` up to and including the next closing brace line."""
    lines = text.splitlines()
    begin = lines.index(start)
    end = begin
    while not lines[end].startswith("}"):
        end += 1
    return lines[begin:end + 1]


# ============================================================================
# Artifacts
# ============================================================================


def test_generates_both_files(eip681_result):
    assert list(eip681_result.files) == ["ffi.rs", "ffi.h"]
    assert eip681_result.metadata["world"] == "eip681"
    assert eip681_result.metadata["interfaces"] == ["parser"]
    assert eip681_result.metadata["function_count"] == 4


def test_generation_is_deterministic(generate, eip681_wit):
    first = generate(eip681_wit)
    second = generate(eip681_wit)

    assert first.files == second.files


def test_header_guard_and_includes(eip681_result):
    header = eip681_result.artifacts.header

    assert "#ifndef WITFFI_EIP681_FFI_H" in header
    assert "#define WITFFI_EIP681_FFI_H" in header
    assert header.rstrip().endswith("#endif /* WITFFI_EIP681_FFI_H */")
    assert "#include <stdint.h>" in header
    assert 'extern "C" {' in header


def test_output_is_tidy(eip681_result):
    for body in eip681_result.files.values():
        assert body.endswith("\n")
        assert not body.endswith("\n\n")
        assert "\n\n\n" not in body
        assert all(line == line.rstrip() for line in body.splitlines())


# ============================================================================
# Records
# ============================================================================


def test_record_struct_in_header(eip681_result):
    header = eip681_result.artifacts.header

    assert _block(header, "struct FfiNativeRequest {") == [
        "struct FfiNativeRequest {",
        "    FfiOptionU64 chain_id;",
        "    FfiByteBuffer recipient_address;",
        "    FfiByteBuffer value_atomic;",
        "};",
    ]


def test_record_fields_keep_declared_order(eip681_result):
    header = eip681_result.artifacts.header

    assert _block(header, "struct FfiErc20Request {")[1:-1] == [
        "    FfiOptionU64 chain_id;",
        "    FfiByteBuffer token_contract_address;",
        "    FfiByteBuffer recipient_address;",
        "    FfiByteBuffer value_atomic;",
    ]


def test_record_struct_in_rust(eip681_result):
    native = eip681_result.artifacts.native

    assert _block(native, "pub struct FfiNativeRequest {") == [
        "pub struct FfiNativeRequest {",
        "    pub chain_id: FfiOptionU64,",
        "    pub recipient_address: FfiByteBuffer,",
        "    pub value_atomic: FfiByteBuffer,",
        "}",
    ]
    assert "pub struct NativeRequest {" in native
    assert "    pub chain_id: Option<u64>," in native
    assert "    pub value_atomic: Option<Vec<u8>>," in native


def test_option_struct_precedes_its_user(eip681_result):
    header = eip681_result.artifacts.header

    assert _block(header, "struct FfiOptionU64 {") == [
        "struct FfiOptionU64 {",
        "    bool has_value;",
        "    uint64_t value;",
        "};",
    ]
    assert header.index("struct FfiOptionU64 {") < header.index("struct FfiNativeRequest {")


def test_forward_declarations(eip681_result):
    header = eip681_result.artifacts.header

    assert "typedef struct FfiNativeRequest FfiNativeRequest;" in header
    assert "typedef union FfiTransactionRequestPayload FfiTransactionRequestPayload;" in header
    assert header.index("typedef struct FfiNativeRequest") < header.index("struct FfiNativeRequest {")


def test_doc_comments_are_carried(eip681_result):
    header = eip681_result.artifacts.header
    native = eip681_result.artifacts.native

    assert "// A native-token transfer request.\nstruct FfiNativeRequest {" in header
    assert "/// A native-token transfer request.\n#[derive(Debug, Clone, PartialEq)]" in native
    assert "    /// Parse a request URI.\n" in native


def test_no_comments(generate, eip681_wit):
    result = generate(eip681_wit, add_comments=False)

    for body in result.files.values():
        assert "Parse a request URI." not in body
        assert "A native-token transfer request." not in body


def test_empty_record_gets_reserved_byte(generate):
    result = generate(
        """
        interface api {
            record marker {}
            make: func() -> marker;
        }
        world w { export api; }
        """
    )

    assert result.success, result.error_message
    assert _block(result.artifacts.header, "struct FfiMarker {") == [
        "struct FfiMarker {",
        "    uint8_t _reserved;",
        "};",
    ]
    assert "    pub _reserved: u8," in result.artifacts.native
    assert "void witffi_free_marker(FfiMarker *ptr);" in result.artifacts.header
    assert any("reserved byte" in warning for warning in result.warnings)


def test_reserved_field_names_are_escaped(generate):
    result = generate(
        """
        interface api {
            record token {
                %type: u32,
                default: bool,
            }
            get: func() -> token;
        }
        world w { export api; }
        """
    )

    assert result.success, result.error_message
    assert "    uint32_t type_;" in result.artifacts.header
    assert "    bool default_;" in result.artifacts.header
    assert "    pub type_: u32," in result.artifacts.native


# ============================================================================
# Variants, enums and flags
# ============================================================================


def test_variant_discriminants(eip681_result):
    header = eip681_result.artifacts.header
    native = eip681_result.artifacts.native

    assert "#define FFI_TRANSACTION_REQUEST_NATIVE 0u" in header
    assert "#define FFI_TRANSACTION_REQUEST_ERC20 1u" in header
    assert "#define FFI_TRANSACTION_REQUEST_UNRECOGNISED 2u" in header
    assert "pub const FFI_TRANSACTION_REQUEST_NATIVE: u32 = 0;" in native
    assert "pub const FFI_TRANSACTION_REQUEST_UNRECOGNISED: u32 = 2;" in native


def test_variant_payload_union(eip681_result):
    header = eip681_result.artifacts.header

    assert _block(header, "union FfiTransactionRequestPayload {") == [
        "union FfiTransactionRequestPayload {",
        "    FfiNativeRequest native;",
        "    FfiErc20Request erc20;",
        "};",
    ]
    assert _block(header, "struct FfiTransactionRequest {") == [
        "struct FfiTransactionRequest {",
        "    uint32_t tag;",
        "    FfiTransactionRequestPayload payload;",
        "};",
    ]


def test_variant_idiomatic_enum(eip681_result):
    native = eip681_result.artifacts.native

    assert _block(native, "pub enum TransactionRequest {") == [
        "pub enum TransactionRequest {",
        "    Native(NativeRequest),",
        "    Erc20(Erc20Request),",
        "    Unrecognised,",
        "}",
    ]


def test_variant_without_payloads_has_no_union(generate):
    result = generate(
        """
        interface api {
            variant signal { start, stop }
            next: func() -> signal;
        }
        world w { export api; }
        """
    )
    header = result.artifacts.header

    assert "union" not in header
    assert _block(header, "struct FfiSignal {") == ["struct FfiSignal {", "    uint32_t tag;", "};"]


def test_enum_constants(eip681_result):
    header = eip681_result.artifacts.header
    native = eip681_result.artifacts.native

    assert "typedef uint32_t FfiNetwork;" in header
    assert "#define FFI_NETWORK_MAINNET 0u" in header
    assert "#define FFI_NETWORK_SEPOLIA 1u" in header
    assert "#define FFI_NETWORK_INVALID UINT32_MAX" in header
    assert "pub type FfiNetwork = u32;" in native
    assert "pub const FFI_NETWORK_INVALID: FfiNetwork = u32::MAX;" in native


def test_enum_case_named_invalid_collides(generate):
    result = generate(
        """
        interface api {
            enum state { valid, invalid }
            get: func() -> state;
        }
        world w { export api; }
        """
    )

    assert not result.success
    assert result.stage == "naming"
    assert isinstance(result.exception, NamingCollision)
    assert "FFI_STATE_INVALID" in result.error_message


def test_flags_bits(eip681_result):
    header = eip681_result.artifacts.header
    native = eip681_result.artifacts.native

    assert "typedef uint8_t FfiCapabilities;" in header
    assert "#define FFI_CAPABILITIES_TRANSFER ((FfiCapabilities)1 << 0)" in header
    assert "#define FFI_CAPABILITIES_APPROVE ((FfiCapabilities)1 << 1)" in header
    assert "pub struct Capabilities(pub u8);" in native
    assert "    pub const TRANSFER: Capabilities = Capabilities(1 << 0);" in native
    assert "if *abi & !0x3u8 != 0 {" in native


def _flags_world(count):
    members = ", ".join(f"member{i}" for i in range(count))
    return f"""
        interface api {{
            flags wide {{ {members} }}
            get: func() -> wide;
        }}
        world w {{ export api; }}
        """


def test_sixty_four_flags_fit(generate):
    result = generate(_flags_world(64))

    assert result.success, result.error_message
    assert "typedef uint64_t FfiWide;" in result.artifacts.header
    assert "#define FFI_WIDE_MEMBER63 ((FfiWide)1 << 63)" in result.artifacts.header


def test_sixty_five_flags_fail(generate):
    result = generate(_flags_world(65))

    assert not result.success
    assert result.stage == "classify"
    assert "exceed the widest backing integer" in result.error_message


# ============================================================================
# Functions
# ============================================================================


def test_header_prototypes(eip681_result):
    header = eip681_result.artifacts.header

    assert "// parse: func(input: string) -> result<transaction-request, string>" in header
    assert "FfiTransactionRequest *witffi_parser_parse(FfiByteSlice input);" in header
    assert "FfiByteBuffer witffi_parser_to_uri(const FfiTransactionRequest *request);" in header
    assert "FfiNetwork witffi_parser_network_of(const FfiNativeRequest *request);" in header
    assert "FfiByteBuffer witffi_parser_version(void);" in header


def test_functions_keep_declared_order(eip681_result):
    header = eip681_result.artifacts.header
    symbols = re.findall(r"witffi_parser_\w+(?=\()", header)

    assert symbols == [
        "witffi_parser_parse",
        "witffi_parser_to_uri",
        "witffi_parser_network_of",
        "witffi_parser_version",
    ]


def test_wrapper_for_fallible_function(eip681_result):
    native = eip681_result.artifacts.native

    assert (
        'pub unsafe extern "C" fn witffi_parser_parse(input: FfiByteSlice) '
        "-> *mut FfiTransactionRequest {"
    ) in native
    wrapper = native[native.index("fn witffi_parser_parse("):]
    wrapper = wrapper[: wrapper.index("\n        }\n")]

    assert "__witffi_clear_last_error();" in wrapper
    assert "let input = input.as_str()?;" in wrapper
    assert "let __witffi_value = <$impl as Eip681>::parser_parse(input)?;" in wrapper
    assert "Ok(Box::into_raw(Box::new(witffi_transaction_request_into_abi(&__witffi_value))))" in wrapper
    assert "::std::ptr::null_mut()" in wrapper
    assert "catch_unwind" in wrapper


def test_wrapper_for_record_param(eip681_result):
    native = eip681_result.artifacts.native

    assert 'let request = __witffi_deref(request, "request")?;' in native
    assert "let request = witffi_native_request_from_abi(&(*request))?;" in native
    assert "                    FFI_NETWORK_INVALID\n" in native


def test_capability_trait(eip681_result):
    native = eip681_result.artifacts.native

    assert "pub trait Eip681 {" in native
    assert "    fn parser_parse(input: &str) -> Result<TransactionRequest, String>;" in native
    assert "    fn parser_to_uri(request: TransactionRequest) -> String;" in native
    assert "    fn parser_network_of(request: NativeRequest) -> Network;" in native
    assert "    fn parser_version() -> String;" in native
    assert "macro_rules! witffi_register {" in native


def test_release_functions(eip681_result):
    header = eip681_result.artifacts.header
    native = eip681_result.artifacts.native

    assert "void witffi_free_byte_buffer(FfiByteBuffer buffer);" in header
    assert "void witffi_free_native_request(FfiNativeRequest *ptr);" in header
    assert "void witffi_free_erc20_request(FfiErc20Request *ptr);" in header
    assert "void witffi_free_transaction_request(FfiTransactionRequest *ptr);" in header
    assert "witffi_free_option_u64" not in header
    assert 'pub unsafe extern "C" fn witffi_free_native_request(ptr: *mut FfiNativeRequest) {' in native


def test_error_accessors(eip681_result):
    header = eip681_result.artifacts.header
    native = eip681_result.artifacts.native

    assert "size_t witffi_last_error_length(void);" in header
    assert "int32_t witffi_last_error_message(char *buf, size_t len);" in header
    assert "void witffi_clear_last_error(void);" in header
    assert 'pub extern "C" fn witffi_last_error_length() -> usize {' in native
    assert 'pub extern "C" fn witffi_clear_last_error() {' in native
    assert "built-in method" not in header + native


def test_function_shapes(generate):
    result = generate(
        """
        interface api {
            type id = u64;
            reset: func();
            check: func() -> result<_, string>;
            find: func(key: id) -> option<u32>;
            lookup: func(name: option<string>) -> list<string>;
            initial: func(c: char) -> bool;
        }
        world w { export api; }
        """
    )
    header = result.artifacts.header
    native = result.artifacts.native

    assert result.success, result.error_message
    assert "void witffi_api_reset(void);" in header
    assert "bool witffi_api_check(void);" in header
    assert "FfiOptionU32 witffi_api_find(uint64_t key);" in header
    assert "FfiListString witffi_api_lookup(FfiByteSlice name);" in header
    assert "bool witffi_api_initial(uint32_t c);" in header

    assert _block(header, "struct FfiListString {") == [
        "struct FfiListString {",
        "    FfiByteBuffer *ptr;",
        "    size_t len;",
        "};",
    ]
    assert "void witffi_free_list_string(FfiListString list);" in header

    assert "pub type Id = u64;" in native
    assert "    fn api_reset();" in native
    assert "    fn api_check() -> Result<(), String>;" in native
    assert "    fn api_lookup(name: Option<&str>) -> Vec<String>;" in native
    assert "let name = if name.ptr.is_null() { None } else { Some(name.as_str()?) };" in native
    assert "Ok(true)" in native


def test_world_level_functions_are_unqualified(generate):
    result = generate(
        """
        world w {
            export ping: func() -> u32;
        }
        """
    )

    assert result.success, result.error_message
    assert "uint32_t witffi_ping(void);" in result.artifacts.header
    assert "    fn ping() -> u32;" in result.artifacts.native
    assert not any("exports no functions" in w for w in result.warnings)


def test_multiple_interfaces_are_qualified(generate):
    result = generate(
        """
        interface alpha {
            parse: func(input: string) -> u32;
        }
        interface beta {
            parse: func(input: string) -> u32;
        }
        world w {
            export alpha;
            export beta;
        }
        """
    )

    assert result.success, result.error_message
    assert "uint32_t witffi_alpha_parse(FfiByteSlice input);" in result.artifacts.header
    assert "uint32_t witffi_beta_parse(FfiByteSlice input);" in result.artifacts.header


def test_interface_name_collision(generate):
    result = generate(
        """
        interface a-b {
            c: func();
        }
        interface a {
            b-c: func();
        }
        world w {
            export a-b;
            export a;
        }
        """
    )

    assert not result.success
    assert result.stage == "naming"
    assert "witffi_a_b_c" in result.error_message


def test_support_structs_sharing_a_name_must_share_a_shape(generate):
    result = generate(
        """
        interface i {
            record bytes { x: u32 }
            f: func() -> list<list<u8>>;
            g: func() -> list<bytes>;
        }
        world w { export i; }
        """
    )

    assert not result.success
    assert result.stage == "naming"
    assert "FfiListBytes" in result.error_message
    assert "list<list<u8>>" in result.error_message
    assert "list<i.bytes>" in result.error_message


def test_support_structs_are_shared_through_aliases(generate):
    result = generate(
        """
        interface api {
            type id = u64;
            first: func() -> option<id>;
            second: func() -> option<u64>;
        }
        world w { export api; }
        """
    )

    assert result.success, result.error_message
    assert result.artifacts.header.count("struct FfiOptionU64 {") == 1


def test_function_cannot_take_a_release_symbol(generate):
    result = generate("world w { export free-byte-buffer: func(x: u32); }")

    assert not result.success
    assert result.stage == "naming"
    assert "witffi_free_byte_buffer" in result.error_message


def test_function_cannot_take_an_accessor_symbol(generate):
    result = generate(
        """
        interface clear {
            last-error: func();
        }
        world w { export clear; }
        """
    )

    assert not result.success
    assert "witffi_clear_last_error" in result.error_message


def test_record_cannot_take_a_shared_type_name(generate):
    result = generate(
        """
        interface api {
            record byte-buffer { x: u32 }
            get: func() -> byte-buffer;
        }
        world w { export api; }
        """
    )

    assert not result.success
    assert result.stage == "naming"
    assert "FfiByteBuffer" in result.error_message


# ============================================================================
# Recursion and unsupported shapes
# ============================================================================


def test_recursion_through_list(generate):
    result = generate(
        """
        interface tree {
            record node {
                label: string,
                children: list<node>,
            }
            root: func() -> node;
        }
        world w { export tree; }
        """
    )

    assert result.success, result.error_message
    header = result.artifacts.header
    assert _block(header, "struct FfiListNode {") == [
        "struct FfiListNode {",
        "    FfiNode *ptr;",
        "    size_t len;",
        "};",
    ]
    assert "    FfiListNode children;" in header
    assert header.index("struct FfiListNode {") < header.index("struct FfiNode {")
    assert "    pub children: Vec<Node>," in result.artifacts.native


def test_recursion_without_list_fails(generate):
    result = generate(
        """
        interface chain {
            record link {
                next: option<link>,
            }
            head: func() -> link;
        }
        world w { export chain; }
        """
    )

    assert not result.success
    assert result.stage == "classify"
    assert "self-referential type without list indirection" in result.error_message


def test_tuples_are_rejected(generate):
    result = generate(
        """
        interface api {
            pair: func() -> tuple<u8, u8>;
        }
        world w { export api; }
        """
    )

    assert not result.success
    assert result.stage == "classify"
    assert result.artifacts is None
    assert result.files == {}


# ============================================================================
# Configuration
# ============================================================================


def test_custom_prefixes(generate, eip681_wit):
    result = generate(eip681_wit, symbol_prefix="eip681", type_prefix="Eip")
    header = result.artifacts.header

    assert "struct EipNativeRequest {" in header
    assert "EipTransactionRequest *eip681_parser_parse(EipByteSlice input);" in header
    assert "#define EIP_TRANSACTION_REQUEST_NATIVE 0u" in header
    assert "#ifndef EIP681_EIP681_FFI_H" in header
    assert "size_t eip681_last_error_length(void);" in header
    assert "witffi_" not in header


def test_file_names_are_fixed(generate, eip681_wit):
    result = generate(eip681_wit, custom={"native_filename": "lib.rs", "header_filename": "eip681.h"})

    assert list(result.files) == ["ffi.rs", "ffi.h"]


def test_quick_generate(eip681_wit):
    artifacts = quick_generate(eip681_wit, type_prefix="Eip")

    assert "struct EipNativeRequest {" in artifacts.header


def test_quick_generate_raises():
    with pytest.raises(NamingCollision):
        quick_generate(
            """
            interface api {
                enum state { invalid }
            }
            world w { export api; }
            """
        )


def test_create_generator():
    generator = create_generator(symbol_prefix="demo")

    assert isinstance(generator, RustGenerator)
    assert generator.config.symbol_prefix == "demo"
    assert generator.language_name == "rust"
    assert generator.file_extension == ".rs"
