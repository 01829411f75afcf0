# config package: authoritative source for all pipeline configuration.
#
# Sub-modules:
#   api_config.py         Gemini endpoint, model identifier, key env var, timeouts
#   generation_params.py  temperatures, token limits, pacing delays, attempt ceilings
#
# API keys are never stored here; they are read from the environment
# (see GEMINI_API_KEYS_ENV) or passed to CredentialPool.configure().
