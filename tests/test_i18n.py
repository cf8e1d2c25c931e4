from habit_flywheel.i18n import MESSAGES, normalize_language_code, t


def test_language_codes_normalize() -> None:
    assert normalize_language_code("zh-CN") == "zh"
    assert normalize_language_code("EN_us") == "en"
    assert normalize_language_code("fr") == "en"
    assert normalize_language_code(None) == "en"


def test_every_language_has_the_same_keys() -> None:
    assert set(MESSAGES["en"]) == set(MESSAGES["zh"])


def test_format_with_arguments() -> None:
    assert t("insufficient_energy", "en", cost=50, current=12) == "Not enough energy: 50 needed, 12 available."
    assert t("reason_completed", "zh", name="跑步") == "完成习惯: 跑步"


def test_missing_arguments_return_the_template() -> None:
    assert t("habit_completed", "en") == "Well done! +{energy} energy."


def test_unknown_key_is_returned_as_is() -> None:
    assert t("no_such_message", "zh") == "no_such_message"
