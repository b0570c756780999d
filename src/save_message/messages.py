from __future__ import annotations

import re

WELCOME_MESSAGE = (
    "Save Message is your personal assistant inside Telegram.\n\n"
    "It helps you organize your saved messages using Topics and smart "
    "suggestions, without using any commands.\n"
    "You can categorize, edit, and retrieve your notes easily with inline "
    "buttons.\n\n"
    "\N{SHIELD}\N{VARIATION SELECTOR-16} 100% private: all your content stays "
    "inside Telegram.\n\n"
    "Just write, we'll handle the rest.\n\n"
    "For more info, send /help."
)

HELP_MESSAGE = """\N{ROBOT FACE} **Save Message Bot Help**

**How to use:**
• Simply send any message and the bot will suggest relevant folders
• Click on a suggested folder to save your message there
• Use "\N{FILE FOLDER} Show All Topics" to browse all existing topics

**Commands:**
• /start - Start the bot
• /help - Show this help message
• /topics - List all your topics
• /addtopic - Create a new topic manually

**Important:** \N{WARNING SIGN}\N{VARIATION SELECTOR-16} **Don't create topics manually in Save message group!** Let the bot create them automatically when you save messages. This ensures proper organization and prevents confusion.

**Tips:**
• The bot uses AI to suggest relevant folders
• Existing topics show with \N{FILE FOLDER} icon, new ones with \N{HEAVY PLUS SIGN}
• Messages are automatically cleaned from General topic after saving
• Success messages auto-delete after 1 minute"""

ICON_FOLDER = "\N{FILE FOLDER}"
ICON_NEW_FOLDER = "\N{HEAVY PLUS SIGN}"

ERROR_MESSAGE_NOT_FOUND = "\N{CROSS MARK} Error: Message not found. Please try again."
ERROR_TOPICS_FAILED = "\N{CROSS MARK} Failed to get topics. Please try again."
ERROR_NO_TOPICS = (
    "\N{FILE FOLDER} No topics found yet. Send a message to create your first topic!"
)
ERROR_CREATE_FAILED = "\N{CROSS MARK} Failed to create topic. Please try again."
ERROR_CREATE_NEW_FAILED = "\N{CROSS MARK} Failed to create new topic."
ERROR_SAVE_FAILED = "\N{CROSS MARK} Failed to save message to topic."
ERROR_EXISTS_CHECK_FAILED = (
    "\N{CROSS MARK} Error checking topic existence. Please try again."
)
ERROR_UNKNOWN_ACTION = "\N{BLACK QUESTION MARK ORNAMENT} Unknown action. Please try again."

SUCCESS_MESSAGE_SAVED = "\N{WHITE HEAVY CHECK MARK} Message saved to topic: "

WARNING_NON_GENERAL_TOPIC = (
    "\N{WARNING SIGN}\N{VARIATION SELECTOR-16} **Please send messages only in the "
    "General topic!**\n\nThis message will be removed automatically in 1 minute."
)

BUTTON_CREATE_NEW_TOPIC = "\N{MEMO} Create New Topic"
BUTTON_SHOW_ALL_TOPICS = "\N{FILE FOLDER} Show All Topics"
BUTTON_BACK_TO_SUGGESTIONS = (
    "\N{LEFTWARDS BLACK ARROW}\N{VARIATION SELECTOR-16} Back to Suggestions"
)
BUTTON_TRY_AGAIN = "\N{ANTICLOCKWISE DOWNWARDS AND UPWARDS OPEN CIRCLE ARROWS} Try Again"
BUTTON_OK = "Ok"

BOT_MENU_MESSAGE = "\N{ROBOT FACE} **Bot Menu**\n\nWhat would you like to do?"
CHOOSE_OPTION_MESSAGE = "Choose an option:"
CHOOSE_FOLDER_MESSAGE = "Choose a folder:"
CHOOSE_FROM_ALL_TOPICS_MESSAGE = "Choose from all existing topics:"

TOPIC_NAME_PROMPT = "\N{MEMO} Please enter the name for your new topic:"
TOPIC_NAME_EMPTY_ERROR = "\N{CROSS MARK} Topic name cannot be empty. Please try again."
TOPIC_NAME_EXISTS_ERROR = (
    "\N{CROSS MARK} A topic with this name already exists. "
    "Please choose a different name."
)
TOPIC_CREATION_MENU_MESSAGE = (
    "\N{MEMO} **Create New Topic**\n\n"
    "Please send the name of the topic you want to create:"
)

TOPICS_LIST_HEADER = "\N{FILE FOLDER} **Your Topics:**\n"
NO_TOPICS_DISCOVERED_MESSAGE = (
    "\N{FILE FOLDER} No topics discovered yet. "
    "Create some topics and the bot will remember them!"
)

AI_PROCESSING_MESSAGE = "\N{THINKING FACE} Thinking..."
AI_FAILED_MESSAGE = "Sorry, I couldn't suggest folders right now."

CALLBACK_PROCESSING = "Processing..."


# Characters with meaning in Telegram legacy Markdown.
_MARKDOWN_SPECIAL_RE = re.compile(r"([_*`\[])")


def escape_markdown(text: str) -> str:
    return _MARKDOWN_SPECIAL_RE.sub(r"\\\1", text)


def format_topics_list(names: list[str]) -> str:
    return TOPICS_LIST_HEADER + "".join(
        f"• {escape_markdown(name)}\n" for name in names
    )


def format_saved_confirmation(topic_name: str, text: str) -> str:
    """Confirmation with up to two quoted lines of the saved message."""
    lines = text.split("\n", 2)[:2] if text else []
    preview = "".join(f'\n"{line}"' for line in lines)
    return SUCCESS_MESSAGE_SAVED + topic_name + preview
