"""Engine-level exceptions.

Failures of submitted code never raise; they come back as ``ExitReason`` and
``FailureReason`` values. The classes here cover caller mistakes and host
misconfiguration.
"""


class JudgeboxError(Exception):
    pass


class UnknownLanguageError(JudgeboxError, LookupError):
    def __init__(self, language_id: str):
        super().__init__(f"unknown language: {language_id}")
        self.language_id = language_id


class UnsupportedLanguageError(JudgeboxError, ValueError):
    def __init__(self, target_id: str, language_id: str):
        super().__init__(f"{target_id} has no starter for language {language_id}")
        self.target_id = target_id
        self.language_id = language_id


class UnsupportedModeError(JudgeboxError, ValueError):
    pass


class ContentNotFoundError(JudgeboxError, LookupError):
    def __init__(self, kind: str, item_id: str):
        super().__init__(f"{kind}_not_found: {item_id}")
        self.kind = kind
        self.item_id = item_id


class CatalogError(JudgeboxError, ValueError):
    pass


class ToolchainUnavailableError(JudgeboxError):
    pass


class ValidatorError(JudgeboxError):
    pass
