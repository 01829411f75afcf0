"""
src/llm_client - Resilient Gemini invocation layer.

Module layout
-------------
config.py       - endpoint, key-source and retry-policy constants
errors.py       - exception taxonomy for the invocation layer
credentials.py  - round-robin key pool with failure-based deactivation
executor.py     - request construction, single-attempt execution
retry.py        - failure categorization, flat backoff, key-rotating retry loop
parser.py       - tolerant JSON extraction from free-form model output

Public interface
----------------
Configure a key pool:
    pool = CredentialPool(load_credentials_from_env())
    pool.configure(extract_api_keys(pasted_text))

Call the model:
    text = call_model_with_rotation(pool, prompt, image=None, ...)

Parse the reply:
    data = parse_json_robust(text, ARRAY)
    data, method = parse_json_with_method(text, OBJECT)
"""

from .credentials import (
    CredentialPool,
    extract_api_keys,
    load_credentials_from_env,
    print_pool_stats,
)
from .errors import (
    ConfigurationError,
    InvalidInputError,
    InvocationExhaustedError,
    LLMClientError,
    NoCredentialsError,
    UnparsableOutputError,
)
from .parser import (
    ARRAY,
    OBJECT,
    parse_json_robust,
    parse_json_with_method,
    sanitize_json_string,
)
from .retry import call_model_with_rotation

__all__ = [
    # Key pool
    "CredentialPool",
    "extract_api_keys",
    "load_credentials_from_env",
    "print_pool_stats",
    # Invocation
    "call_model_with_rotation",
    # Parsing
    "ARRAY",
    "OBJECT",
    "parse_json_robust",
    "parse_json_with_method",
    "sanitize_json_string",
    # Errors
    "LLMClientError",
    "ConfigurationError",
    "NoCredentialsError",
    "InvalidInputError",
    "InvocationExhaustedError",
    "UnparsableOutputError",
]
