import json

import pytest

from webbridge.core import addressing
from webbridge.schemas.events import CommandEvent, MediaEvent, StartEvent
from webbridge.schemas.media import MediaDescriptor
from webbridge.services.bridge import NOT_AUTHORIZED_MSG
from conftest import MockWebSocket


pytestmark = pytest.mark.asyncio

SONG = MediaDescriptor(
    file_name="song.mp3",
    mime_type="audio/mpeg",
    file_size=3145728,
    file_id="AgADsong",
    duration=241,
    title="Night Drive",
    performer="The Band",
)


async def test_admin_bootstrap_authorize_and_push(bridge, chat, fanout, make_profile):
    alice = make_profile(1, username="alice")
    bob = make_profile(2, username="bob")
    carol = make_profile(3)

    # Alice is the first user ever and becomes admin
    await bridge.handle_start(StartEvent(profile=alice))
    await bridge.drain()
    assert NOT_AUTHORIZED_MSG not in chat.texts(alice.chat_id)

    # Bob registers second, stays unauthorized, and Alice is told about him
    await bridge.handle_start(StartEvent(profile=bob))
    await bridge.drain()
    assert chat.texts(bob.chat_id)[-1] == NOT_AUTHORIZED_MSG
    notice = chat.texts(alice.chat_id)[-1]
    assert "@bob" in notice and "/authorize 2" in notice

    # Bob's player tab and Carol's tab are open
    bob_tab, carol_tab = MockWebSocket(), MockWebSocket()
    fanout.register(bob.chat_id, bob_tab)
    fanout.register(carol.chat_id, carol_tab)

    # Before authorization Bob's media is refused
    await bridge.handle_media(MediaEvent(profile=bob, message_id=10, media=SONG))
    assert chat.texts(bob.chat_id)[-1] == NOT_AUTHORIZED_MSG
    assert bob_tab.sent_texts == []

    # Alice authorizes Bob without admin rights
    await bridge.handle_command(CommandEvent(profile=alice, command="authorize", args=["2"]))
    await bridge.drain()
    assert chat.texts(alice.chat_id)[-1] == "User 2 has been authorized."
    assert chat.texts(bob.chat_id)[-1] == "You have been authorized to use WebBridge!"

    # Bob's media now yields a capability URL and a push to his tab
    await bridge.handle_media(MediaEvent(profile=bob, message_id=11, media=SONG))
    token = addressing.token_for(SONG, 10)
    expected_url = f"https://bridge.example.com/11/{token}"
    assert chat.texts(bob.chat_id)[-1] == expected_url

    pushed = [json.loads(t) for t in bob_tab.sent_texts]
    assert len(pushed) == 1
    assert pushed[0]["url"] == expected_url
    assert pushed[0]["title"] == "Night Drive"
    assert pushed[0]["performer"] == "The Band"
    assert pushed[0]["duration"] == "241"

    # Carol never registered: denial only, nothing pushed anywhere
    sent_before = len(chat.sent)
    await bridge.handle_media(MediaEvent(profile=carol, message_id=12, media=SONG))
    assert chat.sent[sent_before:] and all(m.text == NOT_AUTHORIZED_MSG for m in chat.sent[sent_before:])
    assert carol_tab.sent_texts == []
    assert len(bob_tab.sent_texts) == 1

    # Bob is still not an admin
    await bridge.handle_command(CommandEvent(profile=bob, command="listusers"))
    assert chat.texts(bob.chat_id)[-1] == "You are not authorized to perform this action."
