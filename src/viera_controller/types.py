"""Closed enumerations and translation tables for the television protocol."""

from __future__ import annotations

from enum import StrEnum
from typing import Final


class ActionKey(StrEnum):
    """Remote control keys; each value is the code sent in ``X_SendKey``."""

    THIRTY_SECOND_SKIP = "NRC_30S_SKIP-ONOFF"
    TOGGLE_3D = "NRC_3D-ONOFF"
    APPS = "NRC_APPS-ONOFF"
    ASPECT = "NRC_ASPECT-ONOFF"
    BLUE = "NRC_BLUE-ONOFF"
    CANCEL = "NRC_CANCEL-ONOFF"
    CC = "NRC_CC-ONOFF"
    CHAT_MODE = "NRC_CHAT_MODE-ONOFF"
    CH_DOWN = "NRC_CH_DOWN-ONOFF"
    INPUT = "NRC_CHG_INPUT-ONOFF"
    NETWORK = "NRC_CHG_NETWORK-ONOFF"
    CH_UP = "NRC_CH_UP-ONOFF"
    NUM_0 = "NRC_D0-ONOFF"
    NUM_1 = "NRC_D1-ONOFF"
    NUM_2 = "NRC_D2-ONOFF"
    NUM_3 = "NRC_D3-ONOFF"
    NUM_4 = "NRC_D4-ONOFF"
    NUM_5 = "NRC_D5-ONOFF"
    NUM_6 = "NRC_D6-ONOFF"
    NUM_7 = "NRC_D7-ONOFF"
    NUM_8 = "NRC_D8-ONOFF"
    NUM_9 = "NRC_D9-ONOFF"
    DIGA_CONTROL = "NRC_DIGA_CTL-ONOFF"
    DISPLAY = "NRC_DISP_MODE-ONOFF"
    DOWN = "NRC_DOWN-ONOFF"
    ENTER = "NRC_ENTER-ONOFF"
    EPG = "NRC_EPG-ONOFF"
    EZ_SYNC = "NRC_EZ_SYNC-ONOFF"
    FAVORITE = "NRC_FAVORITE-ONOFF"
    FAST_FORWARD = "NRC_FF-ONOFF"
    GAME = "NRC_GAME-ONOFF"
    GREEN = "NRC_GREEN-ONOFF"
    GUIDE = "NRC_GUIDE-ONOFF"
    HDMI1 = "NRC_HDMI1-ONOFF"
    HDMI2 = "NRC_HDMI2-ONOFF"
    HDMI3 = "NRC_HDMI3-ONOFF"
    HDMI4 = "NRC_HDMI4-ONOFF"
    HOLD = "NRC_HOLD-ONOFF"
    HOME = "NRC_HOME-ONOFF"
    INDEX = "NRC_INDEX-ONOFF"
    INFO = "NRC_INFO-ONOFF"
    CONNECT = "NRC_INTERNET-ONOFF"
    LEFT = "NRC_LEFT-ONOFF"
    MENU = "NRC_MENU-ONOFF"
    MPX = "NRC_MPX-ONOFF"
    MUTE = "NRC_MUTE-ONOFF"
    NET_BS = "NRC_NET_BS-ONOFF"
    NET_CS = "NRC_NET_CS-ONOFF"
    NET_TD = "NRC_NET_TD-ONOFF"
    OFF_TIMER = "NRC_OFFTIMER-ONOFF"
    PAUSE = "NRC_PAUSE-ONOFF"
    PICTAI = "NRC_PICTAI-ONOFF"
    PLAY = "NRC_PLAY-ONOFF"
    P_NR = "NRC_P_NR-ONOFF"
    POWER = "NRC_POWER-ONOFF"
    PROGRAM = "NRC_PROG-ONOFF"
    RECORD = "NRC_REC-ONOFF"
    RED = "NRC_RED-ONOFF"
    RETURN = "NRC_RETURN-ONOFF"
    REWIND = "NRC_REW-ONOFF"
    RIGHT = "NRC_RIGHT-ONOFF"
    R_SCREEN = "NRC_R_SCREEN-ONOFF"
    LAST_VIEW = "NRC_R_TUNE-ONOFF"
    SAP = "NRC_SAP-ONOFF"
    TOGGLE_SD_CARD = "NRC_SD_CARD-ONOFF"
    SKIP_NEXT = "NRC_SKIP_NEXT-ONOFF"
    SKIP_PREV = "NRC_SKIP_PREV-ONOFF"
    SPLIT = "NRC_SPLIT-ONOFF"
    STOP = "NRC_STOP-ONOFF"
    SUBTITLES = "NRC_STTL-ONOFF"
    OPTION = "NRC_SUBMENU-ONOFF"
    SURROUND = "NRC_SURROUND-ONOFF"
    SWAP = "NRC_SWAP-ONOFF"
    TEXT = "NRC_TEXT-ONOFF"
    TV = "NRC_TV-ONOFF"
    UP = "NRC_UP-ONOFF"
    LINK = "NRC_VIERA_LINK-ONOFF"
    VOLUME_DOWN = "NRC_VOLDOWN-ONOFF"
    VOLUME_UP = "NRC_VOLUP-ONOFF"
    VTOOLS = "NRC_VTOOLS-ONOFF"
    YELLOW = "NRC_YELLOW-ONOFF"
    AD_CHANGE = "NRC_AD_CHANGE-ONOFF"


class ChannelPropertyIdentifier(StrEnum):
    """Properties exposed on the television channel."""

    STATE = "state"
    VOLUME = "volume"
    MUTE = "mute"
    REMOTE = "remote"
    INPUT_SOURCE = "input_source"
    APPLICATION = "application"
    HDMI = "hdmi"
    KEY_TV = "key_tv"
    KEY_HOME = "key_home"
    KEY_CHANNEL_UP = "key_channel_up"
    KEY_CHANNEL_DOWN = "key_channel_down"
    KEY_VOLUME_UP = "key_volume_up"
    KEY_VOLUME_DOWN = "key_volume_down"
    KEY_ARROW_UP = "key_arrow_up"
    KEY_ARROW_DOWN = "key_arrow_down"
    KEY_ARROW_LEFT = "key_arrow_left"
    KEY_ARROW_RIGHT = "key_arrow_right"
    KEY_0 = "key_0"
    KEY_1 = "key_1"
    KEY_2 = "key_2"
    KEY_3 = "key_3"
    KEY_4 = "key_4"
    KEY_5 = "key_5"
    KEY_6 = "key_6"
    KEY_7 = "key_7"
    KEY_8 = "key_8"
    KEY_9 = "key_9"
    KEY_RED = "key_red"
    KEY_GREEN = "key_green"
    KEY_YELLOW = "key_yellow"
    KEY_BLUE = "key_blue"
    KEY_OK = "key_ok"
    KEY_BACK = "key_back"
    KEY_MENU = "key_menu"


class ConnectionState(StrEnum):
    """Connection state reported for each television."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    STOPPED = "stopped"
    UNKNOWN = "unknown"


TELEVISION_CHANNEL: Final = "television"

KEYS_PROPERTIES: Final[dict[ActionKey, ChannelPropertyIdentifier]] = {
    ActionKey.TV: ChannelPropertyIdentifier.KEY_TV,
    ActionKey.HOME: ChannelPropertyIdentifier.KEY_HOME,
    ActionKey.CH_UP: ChannelPropertyIdentifier.KEY_CHANNEL_UP,
    ActionKey.CH_DOWN: ChannelPropertyIdentifier.KEY_CHANNEL_DOWN,
    ActionKey.VOLUME_UP: ChannelPropertyIdentifier.KEY_VOLUME_UP,
    ActionKey.VOLUME_DOWN: ChannelPropertyIdentifier.KEY_VOLUME_DOWN,
    ActionKey.UP: ChannelPropertyIdentifier.KEY_ARROW_UP,
    ActionKey.DOWN: ChannelPropertyIdentifier.KEY_ARROW_DOWN,
    ActionKey.LEFT: ChannelPropertyIdentifier.KEY_ARROW_LEFT,
    ActionKey.RIGHT: ChannelPropertyIdentifier.KEY_ARROW_RIGHT,
    ActionKey.NUM_0: ChannelPropertyIdentifier.KEY_0,
    ActionKey.NUM_1: ChannelPropertyIdentifier.KEY_1,
    ActionKey.NUM_2: ChannelPropertyIdentifier.KEY_2,
    ActionKey.NUM_3: ChannelPropertyIdentifier.KEY_3,
    ActionKey.NUM_4: ChannelPropertyIdentifier.KEY_4,
    ActionKey.NUM_5: ChannelPropertyIdentifier.KEY_5,
    ActionKey.NUM_6: ChannelPropertyIdentifier.KEY_6,
    ActionKey.NUM_7: ChannelPropertyIdentifier.KEY_7,
    ActionKey.NUM_8: ChannelPropertyIdentifier.KEY_8,
    ActionKey.NUM_9: ChannelPropertyIdentifier.KEY_9,
    ActionKey.RED: ChannelPropertyIdentifier.KEY_RED,
    ActionKey.GREEN: ChannelPropertyIdentifier.KEY_GREEN,
    ActionKey.YELLOW: ChannelPropertyIdentifier.KEY_YELLOW,
    ActionKey.BLUE: ChannelPropertyIdentifier.KEY_BLUE,
    ActionKey.ENTER: ChannelPropertyIdentifier.KEY_OK,
    ActionKey.RETURN: ChannelPropertyIdentifier.KEY_BACK,
    ActionKey.MENU: ChannelPropertyIdentifier.KEY_MENU,
}

PROPERTIES_KEYS: Final[dict[ChannelPropertyIdentifier, ActionKey]] = {
    prop: key for key, prop in KEYS_PROPERTIES.items()
}

HDMI_KEYS: Final[dict[int, ActionKey]] = {
    1: ActionKey.HDMI1,
    2: ActionKey.HDMI2,
    3: ActionKey.HDMI3,
    4: ActionKey.HDMI4,
}
