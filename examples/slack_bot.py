"""
Slack bot example rules.

Setup:
1. Create a Slack app at https://api.slack.com/apps
2. Enable Socket Mode and create an app-level token with connections:write
3. Subscribe to the message.* and reaction_added bot events
4. Add scopes: chat:write, reactions:write, reactions:read, channels:read,
   groups:read, im:read, users:read, channels:history, im:history
5. Set environment variables and run

Run:
    export SLACK_BOT_TOKEN=xoxb-...
    export SLACK_APP_TOKEN=xapp-...
    python run.py

or, with the same rules against a local console:
    quipbot examples.slack_bot:setup --console
"""

import os

import aiohttp

from quipbot import Bot, matcher

INCLUSIVE_LANGUAGE = (
    "Not a big deal but consider using “y’all”, “everyone”, or "
    "“folks” instead. It’s more inclusive than “guys”. \U0001F44D"
)

TEAMS = {"ops": "@ops-team", "security": "@sec"}

LETTERS = {
    # If l-train is already used, fall back to the legacy l-train
    "l": [["l-train"], ["l-train-3877"]],
    "i": ["information_source"],
    "o": ["zero"],
    "p": ["parking"],
    # Randomly pick between x and heavy multiplication, a 3rd x gets the cross mark
    "x": [["x", "heavy_multiplication_x"], ["negative_squared_cross_mark"]],
}


async def start_incident(name: str) -> str:
    url = os.getenv("INCIDENT_WEBHOOK_URL", "")
    if url:
        async with aiohttp.ClientSession() as session:
            async with session.post(url, params={"n": name}) as resp:
                resp.raise_for_status()
    return f"Started Incident: {name}"


def setup(bot: Bot) -> None:
    # Only if they do: `@bot hi` or a DM saying hi
    @bot.register_primary(matcher.directed_at_bot.contains("hi"))
    def say_hi(msg):
        return f"hi to you too {msg.sender_name} \U0001F918"

    # At most once per user and per conversation every 4 hours
    bot.register_primary(
        matcher.contains("you guys").and_(matcher.throttled_by_conversation, matcher.throttled_by_user),
        lambda msg: INCLUSIVE_LANGUAGE,
    )

    for channel, group in TEAMS.items():
        bot.register_primary(
            matcher.in_channel(channel).or_(matcher.contains("<!channel>"), matcher.contains("<!here>")),
            lambda msg, group=group: msg.reply_thread(
                f"Lots of other people in this channel, use {group} to only talk to the relevant people"
            ),
        )

    bot.register_primary(
        matcher.matches(r"\d{1,2}:\d{2}"),
        lambda msg, match: msg.ephemeral("That looks like a time"),
    )

    @bot.register_primary(matcher.in_channel("incidents").starts_with(".start"))
    async def incident(msg, rest):
        return await start_incident(rest)

    # Errors come back to the sender as an ephemeral message
    bot.register_primary(
        matcher.directed_at_bot.contains("bad emoji error"),
        lambda msg: msg.emoji_reaction("+1111"),
    )
    bot.register_primary(matcher.contains("opx"), lambda msg: msg.emoji_reaction("zero", "parking", "x"))

    bot.configure_letter_map(LETTERS)
    bot.register_primary(matcher.contains("xox"), lambda msg: msg.emoji_word_reaction("xox"))

    @bot.register_reaction("eyes")
    def looking(msg, reaction):
        return msg.reply_thread(f"<@{reaction.reacting_user_id}> is looking into this")

    @bot.register_fallthrough(matcher.is_im)
    def unknown(msg):
        return "Sorry, I don't know that one. Try saying hi."
