"""Tests for help rendering, the help command and error replies."""

from unittest.mock import AsyncMock

import pytest

from commandwire.commands import ParameterType
from commandwire.events import (
    CommandErrorEventArgs,
    CommandErrorType,
    CommandEventArgs,
)
from commandwire.exceptions import CommandPermissionError
from commandwire.help import (
    NO_COMMANDS,
    UNKNOWN_HELP_TOPIC,
    HelpMode,
    error_reply_text,
    render_command_usage,
    render_general_help,
    render_map_help,
    reply_to_errors,
)
from commandwire.permissions import DEFAULT_DENIAL
from commandwire.service import CommandService


def _noop(event):
    return None


def _populate(service):
    service.create_command("ping").description("Replies with pong.").do(_noop)
    admin = service.create_group("admin")
    admin.category("Admin")
    admin.create_command("kick").parameter("user").description("Kick a user.").do(_noop)


# -------------------------------------------------------------------
# Rendering
# -------------------------------------------------------------------

class TestRenderUsage:

    def test_usage_with_all_parameter_kinds(self, service):
        command = (
            service.create_command("post")
            .parameter("target")
            .parameter("title", ParameterType.OPTIONAL)
            .parameter("body", ParameterType.UNPARSED)
            .alias("p", "send")
            .do(_noop)
        )
        assert render_command_usage(command) == (
            "`post <target> [title] [--]`\n"
            "No description.\n"
            "Aliases: `p`, `send`\n"
        )

    def test_usage_with_description(self, service):
        command = (
            service.create_command("tag")
            .parameter("tags", ParameterType.MULTIPLE)
            .description("Tag a post.")
            .do(_noop)
        )
        assert render_command_usage(command) == "`tag [...]`\nTag a post.\n"


class TestGeneralHelp:

    def test_lists_categories_and_groups(self, service):
        _populate(service)
        assert render_general_help(service, None, None) == (
            "These are the commands you can use:\n"
            "`ping`\n"
            "Admin: `admin*`\n"
            "\n"
            "You can use `/` to call a command.\n"
            "`/help <command>` can tell you more about how to use a command.\n"
        )

    def test_hidden_and_denied_groups_left_out(self, service):
        service.create_command("ping").do(_noop)
        service.create_command("secret").hide().do(_noop)
        service.create_command("staff").add_check(lambda c, u, ch: False).do(_noop)
        text = render_general_help(service, None, None)
        assert "`ping`" in text
        assert "secret" not in text
        assert "staff" not in text

    def test_alias_only_groups_left_out(self, service):
        service.create_command("foo bar").alias("fb").do(_noop)
        text = render_general_help(service, None, None)
        assert "`foo*`" in text
        assert "fb" not in text

    def test_nothing_visible(self, service):
        service.create_command("secret").hide().do(_noop)
        assert render_general_help(service, None, None) == NO_COMMANDS

    def test_several_command_chars(self):
        service = CommandService(command_chars=("!", "?", "/"))
        service.create_command("ping").do(_noop)
        text = render_general_help(service, None, None)
        assert "You can use `! ?` or `/` to call a command.\n" in text
        assert "`!help <command>`" in text

    def test_no_command_chars(self):
        service = CommandService(command_chars=())
        service.create_command("ping").do(_noop)
        text = render_general_help(service, None, None)
        assert "to call a command" not in text
        assert text.endswith("`help <command>` can tell you more about how to use a command.\n")


class TestMapHelp:

    def test_group_without_commands(self, service):
        _populate(service)
        assert render_map_help(service.get_item("admin"), None, None) == (
            "`admin`\nSub Commands: `kick`"
        )

    def test_leaf_command(self, service):
        _populate(service)
        assert render_map_help(service.get_item("admin kick"), None, None) == (
            "`admin kick <user>`\nKick a user.\n"
        )

    def test_denied_commands_skipped(self, service):
        service.create_command("x").add_check(lambda c, u, ch: False).do(_noop)
        assert render_map_help(service.get_item("x"), None, None) == NO_COMMANDS

    def test_colliding_commands_separated(self, service):
        service.create_command("greet").parameter("name").do(_noop)
        service.create_command("greet").parameter("names", ParameterType.MULTIPLE).do(_noop)
        assert render_map_help(service.get_item("greet"), None, None) == (
            "`greet <name>`\nNo description.\n"
            "\n"
            "`greet [...]`\nNo description.\n"
        )


# -------------------------------------------------------------------
# The help command
# -------------------------------------------------------------------

class TestHelpCommand:

    @pytest.mark.asyncio
    async def test_general_help_in_channel(self, service, source, channel, make_message):
        _populate(service)
        service.install(source)
        await service.handle_message(make_message("/help"))
        assert channel.sent == [render_general_help(service, None, None)]

    @pytest.mark.asyncio
    async def test_topic_help(self, service, source, channel, make_message):
        _populate(service)
        service.install(source)
        await service.handle_message(make_message("/help admin kick"))
        assert channel.sent == ["`admin kick <user>`\nKick a user.\n"]

    @pytest.mark.asyncio
    async def test_unknown_topic(self, service, source, channel, make_message):
        _populate(service)
        service.install(source)
        await service.handle_message(make_message("/help nothing here"))
        assert channel.sent == [UNKNOWN_HELP_TOPIC]

    @pytest.mark.asyncio
    async def test_private_mode_replies_in_private_channel(
        self, source, channel, make_message
    ):
        service = CommandService(help_mode=HelpMode.PRIVATE)
        _populate(service)
        service.install(source)

        await service.handle_message(make_message("/help", user_id="+15550002222"))

        assert channel.sent == []
        private = source.private_channels["+15550002222"]
        assert private.id == "dm-+15550002222"
        assert private.sent and private.sent[0].startswith("These are the commands")

    @pytest.mark.asyncio
    async def test_help_respects_channel_checks(self, service, source, make_message, make_channel):
        service.create_command("deploy").add_check(
            lambda c, u, ch: ch.id == "ops"
        ).do(_noop)
        service.create_command("ping").do(_noop)
        service.install(source)

        ops = make_channel("ops")
        lobby = make_channel("lobby")
        await service.handle_message(make_message("/help", channel=ops))
        await service.handle_message(make_message("/help", channel=lobby))

        assert "`deploy`" in ops.sent[0]
        assert "`deploy`" not in lobby.sent[0]

    @pytest.mark.asyncio
    async def test_failing_check_hides_command(self, service, source, channel, make_message):
        def broken(command, user, channel):
            raise RuntimeError("role lookup failed")

        service.create_command("audit").add_check(broken).do(_noop)
        service.create_command("ping").do(_noop)
        service.install(source)

        await service.handle_message(make_message("/help"))
        await service.handle_message(make_message("/help audit"))

        assert "`ping`" in channel.sent[0]
        assert "audit" not in channel.sent[0]
        assert channel.sent[1] == NO_COMMANDS


# -------------------------------------------------------------------
# Error replies
# -------------------------------------------------------------------

def _error(error_type, message, command=None, exception=None):
    return CommandErrorEventArgs(
        error_type, CommandEventArgs(message, command), exception
    )


class TestErrorReplies:

    def test_unknown_command_is_silent(self, make_message):
        error = _error(CommandErrorType.UNKNOWN_COMMAND, make_message("/x"))
        assert error_reply_text(error) is None

    def test_permission_reason_used(self, make_message):
        error = _error(
            CommandErrorType.BAD_PERMISSIONS,
            make_message("/x"),
            exception=CommandPermissionError("staff only"),
        )
        assert error_reply_text(error) == "staff only"

    def test_permission_default(self, make_message):
        error = _error(CommandErrorType.BAD_PERMISSIONS, make_message("/x"))
        assert error_reply_text(error) == DEFAULT_DENIAL

    def test_bad_arg_count(self, make_message):
        error = _error(CommandErrorType.BAD_ARG_COUNT, make_message("/x"))
        assert "Wrong number of arguments" in error_reply_text(error)

    def test_invalid_input_includes_usage(self, service, make_message):
        command = service.create_command("echo").parameter("text").do(_noop)
        error = _error(CommandErrorType.INVALID_INPUT, make_message('/echo "x'), command)
        assert error_reply_text(error) == (
            "Unable to read the arguments, check for an unclosed quote.\n"
            "`echo <text>`\nNo description.\n"
        )

    def test_exception(self, make_message):
        error = _error(
            CommandErrorType.EXCEPTION, make_message("/x"), exception=ValueError("boom")
        )
        assert error_reply_text(error) == "The command failed to run."

    @pytest.mark.asyncio
    async def test_reply_to_errors_sends_to_origin(self, channel, make_message):
        await reply_to_errors(_error(CommandErrorType.BAD_ARG_COUNT, make_message("/x")))
        await reply_to_errors(_error(CommandErrorType.UNKNOWN_COMMAND, make_message("/y")))
        assert len(channel.sent) == 1

    @pytest.mark.asyncio
    async def test_wired_as_listener(self, service, source, channel, make_message):
        service.create_command("boom").do(AsyncMock(side_effect=RuntimeError("x")))
        service.on_command_error(reply_to_errors)
        service.install(source)
        await service.handle_message(make_message("/boom"))
        assert channel.sent == ["The command failed to run."]
