from save_message.keyboards import (
    build_all_topics_keyboard,
    build_menu_keyboard,
    build_retry_keyboard,
    build_suggestion_keyboard,
    build_warning_keyboard,
    keyboard_callback_data,
    partition_suggestions,
)
from save_message.telegram.api_models import InlineKeyboardMarkup


def _labels(markup: InlineKeyboardMarkup) -> list[str]:
    return [button.text for row in markup.inline_keyboard for button in row]


def test_suggestion_keyboard_with_existing_and_new() -> None:
    markup = build_suggestion_keyboard(10, ["Work", "NewIdea"], ["Work"])

    assert _labels(markup) == [
        "\N{FILE FOLDER} Work",
        "\N{HEAVY PLUS SIGN} NewIdea",
        "\N{MEMO} Create New Topic",
        "\N{FILE FOLDER} Show All Topics",
        "\N{ANTICLOCKWISE DOWNWARDS AND UPWARDS OPEN CIRCLE ARROWS} Try Again",
    ]
    assert all(len(row) == 1 for row in markup.inline_keyboard)
    assert keyboard_callback_data(markup) == [
        "Work_10",
        "NewIdea_10",
        "create_new_folder_10",
        "show_all_topics_10",
        "retry_10",
    ]


def test_suggestion_keyboard_without_topics_has_no_show_all() -> None:
    markup = build_suggestion_keyboard(11, ["Groceries", "Shopping"], [])

    assert _labels(markup) == [
        "\N{HEAVY PLUS SIGN} Groceries",
        "\N{HEAVY PLUS SIGN} Shopping",
        "\N{MEMO} Create New Topic",
        "\N{ANTICLOCKWISE DOWNWARDS AND UPWARDS OPEN CIRCLE ARROWS} Try Again",
    ]
    assert all(data.endswith("_11") for data in keyboard_callback_data(markup))


def test_existing_match_reuses_stored_spelling() -> None:
    parts = partition_suggestions(["work", "WORK", " Travel "], ["Work"])

    assert parts.existing == ("Work",)
    assert parts.new == ("Travel",)


def test_general_is_never_offered() -> None:
    parts = partition_suggestions(["General", "general", " GENERAL ", "Notes"], ["General"])

    assert parts.existing == ()
    assert parts.new == ("Notes",)

    markup = build_all_topics_keyboard(3, ["General", "Notes"])
    assert "\N{FILE FOLDER} General" not in _labels(markup)


def test_new_names_must_be_short_single_line() -> None:
    parts = partition_suggestions(["x" * 51, "two\nlines", "x" * 50, ""], [])

    assert parts.new == ("x" * 50,)


def test_new_names_deduplicated_case_insensitively() -> None:
    parts = partition_suggestions(["Ideas", "ideas", "IDEAS"], [])

    assert parts.new == ("Ideas",)


def test_names_that_collide_with_actions_are_dropped() -> None:
    markup = build_suggestion_keyboard(5, ["retry", "Books"], [])

    assert keyboard_callback_data(markup) == [
        "Books_5",
        "create_new_folder_5",
        "retry_5",
    ]


def test_all_topics_keyboard_ends_with_back_button() -> None:
    markup = build_all_topics_keyboard(8, ["Books", "Work"])

    assert keyboard_callback_data(markup) == [
        "Books_8",
        "Work_8",
        "back_to_suggestions_8",
    ]
    assert _labels(markup)[-1].endswith("Back to Suggestions")


def test_single_button_keyboards() -> None:
    assert keyboard_callback_data(build_retry_keyboard(4)) == ["retry_4"]
    assert _labels(build_retry_keyboard(4)) == [
        "\N{ANTICLOCKWISE DOWNWARDS AND UPWARDS OPEN CIRCLE ARROWS} Try Again"
    ]
    assert keyboard_callback_data(build_warning_keyboard(4)) == [
        "detectMessageOnOtherTopic_ok_4"
    ]
    assert _labels(build_warning_keyboard(4)) == ["Ok"]


def test_menu_keyboard_uses_menu_tokens() -> None:
    assert keyboard_callback_data(build_menu_keyboard()) == [
        "create_topic_menu",
        "show_all_topics_menu",
    ]
