"""Command tables and user-facing texts.

A keyword maps to at most one ``Command`` per table. Device commands reuse the
inbound envelope with the message replaced by a device token; menu commands
reply on the calling channel and may move the conversation to another mode.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from home_message_router.conversation import DialogMode
from home_message_router.messages import Channel
from home_message_router.topics import DeviceKind

MAIN_MENU = (
    "Home Automation"
    "\r\nEscolha a opcao abaixo: "
    "\r\n1 - Informar Temperatura"
    "\r\n2 - Desodorizar Ambiente"
    "\r\n3 - Abrir Portaria"
    "\r\n4 - Alimentar Pets"
    "\r\n5 - Agendar Alerta"
    "\r\n6 - Rastrear Encomenda"
    "\r\nADMIN - Menu Administrativo"
)

ADMIN_MENU = (
    "Menu Administrativo"
    "\r\nEscolha a opcao abaixo: "
    "\r\n1 - Reiniciar Alimentador de Pets"
    "\r\n2 - Reiniciar Interfone"
    "\r\n3 - Reiniciar Desodorizador"
    "\r\n4 - Reiniciar Gateway SMS"
    "\r\n5 - Reiniciar Broker"
    "\r\n6 - Desligar Broker"
    "\r\nMENU - Voltar ao menu principal"
)

INVALID_OPTION = "Opcao Invalida!"
INVALID_ADMIN_OPTION = "Opcao Invalida! Digite MENU para voltar ao menu principal."
ALERT_SYNTAX = "Para agendar um alerta envie: ALERT <descricao>, <minutos>\r\nExemplo: ALERT Tirar o lixo, 30"
TRACKING_PROMPT = "Digite o codigo de rastreio (13 caracteres) ou MENU para voltar."
INVALID_TRACKING_CODE = "Codigo de rastreio invalido!"

TRACKING_CODE_LENGTH = 13

GET = "GET"
ACT = "ACT"
RESTART = "RST"
SHUTDOWN = "STD"


@dataclass(frozen=True)
class Command:
    """One row of a command table.

    Attributes:
        keywords: Normalized (uppercase, single-spaced) inputs that select this command
        target: Device topic to publish ``token`` to
        token: Device token replacing the user's message
        reply: Text sent back on the calling channel
        next_mode: Dialog mode after the command, None keeps the current one
        channels: Channels accepting these keywords, None for all of them
    """

    keywords: tuple[str, ...]
    target: DeviceKind | None = None
    token: str | None = None
    reply: str | None = None
    next_mode: DialogMode | None = None
    channels: frozenset[Channel] | None = None

    def accepts(self, channel: Channel) -> bool:
        return self.channels is None or channel in self.channels


class CommandTable:
    def __init__(self, commands: Iterable[Command]) -> None:
        self._index: dict[str, list[Command]] = {}
        for command in commands:
            for keyword in command.keywords:
                self._index.setdefault(keyword, []).append(command)

    def __contains__(self, keyword: object) -> bool:
        return keyword in self._index

    def lookup(self, keyword: str, channel: Channel) -> Command | None:
        for command in self._index.get(keyword, ()):
            if command.accepts(channel):
                return command
        return None


_CHATBOT_ONLY = frozenset({Channel.CHATBOT})

MENU_COMMAND = Command(keywords=("MENU",), reply=MAIN_MENU, next_mode=DialogMode.MAIN)

# (option code, hidden shortcut, target, token)
_ADMIN_ACTIONS = (
    ("1", "RST PETS", DeviceKind.PETS, RESTART),
    ("2", "RST INT", DeviceKind.INTERCOM, RESTART),
    ("3", "RST DES", DeviceKind.DEODORIZER, RESTART),
    ("4", "RST SMS", DeviceKind.SMS_GATEWAY, RESTART),
    ("5", "RST BRK", DeviceKind.CONFIG, RESTART),
    ("6", "STD BRK", DeviceKind.CONFIG, SHUTDOWN),
)

ADMIN_COMMANDS = CommandTable(
    [
        MENU_COMMAND,
        *(
            Command(keywords=(code, shortcut), target=target, token=token)
            for code, shortcut, target, token in _ADMIN_ACTIONS
        ),
    ]
)

# AIDEV-NOTE: Restart shortcuts predate the admin menu and stay usable from the main menu
ADMIN_SHORTCUTS = tuple(
    Command(keywords=(shortcut,), target=target, token=token) for _, shortcut, target, token in _ADMIN_ACTIONS
)

ALERT_KEYWORD = "ALERT"

MAIN_COMMANDS = CommandTable(
    [
        MENU_COMMAND,
        Command(keywords=("1", "OP1"), target=DeviceKind.TEMPERATURE, token=GET),
        Command(keywords=("2", "OP2"), target=DeviceKind.DEODORIZER, token=ACT),
        Command(keywords=("3", "OP3"), target=DeviceKind.INTERCOM, token=ACT),
        Command(keywords=("4", "OP4"), target=DeviceKind.PETS, token=ACT),
        # Labels of the chat-bot keyboard buttons
        Command(keywords=("INFORMAR TEMPERATURA",), target=DeviceKind.TEMPERATURE, token=GET, channels=_CHATBOT_ONLY),
        Command(keywords=("DESODORIZAR AMBIENTE",), target=DeviceKind.DEODORIZER, token=ACT, channels=_CHATBOT_ONLY),
        Command(keywords=("ABRIR PORTARIA",), target=DeviceKind.INTERCOM, token=ACT, channels=_CHATBOT_ONLY),
        Command(keywords=("ALIMENTAR PETS",), target=DeviceKind.PETS, token=ACT, channels=_CHATBOT_ONLY),
        Command(keywords=("5", "OP5", ALERT_KEYWORD), reply=ALERT_SYNTAX),
        Command(
            keywords=("6", "OP6", "RASTREIO"),
            reply=TRACKING_PROMPT,
            next_mode=DialogMode.TRACKING_AWAIT_CODE,
        ),
        Command(keywords=("ADMIN",), reply=ADMIN_MENU, next_mode=DialogMode.ADMIN),
        *ADMIN_SHORTCUTS,
    ]
)
