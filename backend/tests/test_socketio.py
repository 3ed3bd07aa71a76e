def _create_room(test_client, is_private=True):
    return test_client.emit('create-room', {'isPrivate': is_private}, callback=True)


def _players_by_name(payload):
    return {p['name']: p for p in payload['players']}


def test_connect_without_name_is_refused(connect):
    anonymous = connect(auth={})
    assert not anonymous.is_connected()
    blank = connect(auth={'name': '   '})
    assert not blank.is_connected()


def test_connect_acknowledges_identity(sio_client, events):
    assert sio_client.is_connected()
    got = events(sio_client)
    assert got['connected'][0]['name'] == 'Alice'
    assert got['connected'][0]['id']


def test_create_room_then_get_room_users(sio_client, events):
    room_id = _create_room(sio_client)
    assert isinstance(room_id, str) and len(room_id) == 6
    events(sio_client)

    sio_client.emit('get-room-users', room_id)
    got = events(sio_client)
    users = got['room-users'][0]
    assert users['roomId'] == room_id
    assert len(users['players']) == 1
    creator = users['players'][0]
    assert creator['name'] == 'Alice'
    assert creator['score'] == 0
    assert creator['status'] == 'LOBBY'
    assert users['host'] == creator['id']

    room = got['room-joined'][0]
    assert room['id'] == room_id
    assert room['status'] == 'WAITING'
    assert room['difficulty'] == 'EASY'
    assert room['maxPlayers'] == 5
    assert room['isPrivate'] is True
    assert room['questions'] is None
    assert room['topic']


def test_make_room_alias_creates_public_room(sio_client, events):
    room_id = sio_client.emit('make-room', {'isPrivate': False}, callback=True)
    sio_client.emit('get-room-users', room_id)
    assert events(sio_client)['room-joined'][0]['isPrivate'] is False


def test_join_broadcasts_roster(connect, events):
    host = connect('Alice')
    room_id = _create_room(host)
    bob = connect('Bob')
    events(host)
    events(bob)

    bob.emit('join-room', room_id)
    for member in (host, bob):
        joined = events(member)['player-joined'][0]
        assert joined['roomId'] == room_id
        assert joined['player']['name'] == 'Bob'
        assert joined['player']['status'] == 'LOBBY'
        assert [p['name'] for p in joined['players']] == ['Alice', 'Bob']


def test_join_unknown_room(sio_client, events):
    events(sio_client)
    sio_client.emit('join-room', 'NOPE42')
    got = events(sio_client)
    assert got['room-error'][0] == ['Room does not exist', {'kind': 'not_found'}]


def test_capacity_is_enforced_at_join(connect, events):
    host = connect('Alice')
    room_id = _create_room(host)
    host.emit('room-update', {'id': room_id, 'topic': 'Modern Art', 'difficulty': 'MEDIUM', 'maxPlayers': 2})
    bob = connect('Bob')
    carol = connect('Carol')
    events(carol)

    bob.emit('join-room', room_id)
    carol.emit('join-room', room_id)

    got = events(carol)
    assert got['room-error'][0][1] == {'kind': 'room_full'}
    assert 'player-joined' not in got

    host.emit('get-room-users', room_id)
    users = events(host)['room-users'][-1]
    assert sorted(p['name'] for p in users['players']) == ['Alice', 'Bob']


def test_update_settings_is_host_only(connect, events):
    host = connect('Alice')
    room_id = _create_room(host)
    bob = connect('Bob')
    bob.emit('join-room', room_id)
    events(host)
    events(bob)

    bob.emit('room-update', {'id': room_id, 'topic': 'Hacked', 'difficulty': 'HARD', 'maxPlayers': 9})
    got = events(bob)
    assert got['room-error'][0][1] == {'kind': 'forbidden'}
    assert 'room-saved' not in events(host)

    host.emit('room-update', {'id': room_id, 'topic': 'World Geography', 'difficulty': 'hard', 'maxPlayers': 3})
    saved = events(bob)['room-saved'][0]
    assert saved['topic'] == 'World Geography'
    assert saved['difficulty'] == 'HARD'
    assert saved['secondsPerQuestion'] == 60
    assert saved['maxPlayers'] == 3


def test_update_settings_rejects_bad_payload(sio_client, events):
    room_id = _create_room(sio_client)
    events(sio_client)
    sio_client.emit('room-update', {'id': room_id, 'topic': 'Art', 'difficulty': 'IMPOSSIBLE', 'maxPlayers': 3})
    sio_client.emit('room-update', {'id': room_id, 'topic': 'Art', 'difficulty': 'EASY', 'maxPlayers': 0})
    got = events(sio_client)
    assert [e[1]['kind'] for e in got['room-error']] == ['invalid_payload', 'invalid_payload']
    assert 'room-saved' not in got


def test_update_settings_rejects_fractional_and_text_capacity(sio_client, events):
    room_id = _create_room(sio_client)
    events(sio_client)
    sio_client.emit('room-update', {'id': room_id, 'topic': 'Art', 'difficulty': 'EASY', 'maxPlayers': 2.9})
    sio_client.emit('room-update', {'id': room_id, 'topic': 'Art', 'difficulty': 'EASY', 'maxPlayers': '3'})
    got = events(sio_client)
    assert [e[1]['kind'] for e in got['room-error']] == ['invalid_payload', 'invalid_payload']
    assert 'room-saved' not in got

    sio_client.emit('get-room-users', room_id)
    assert events(sio_client)['room-joined'][0]['maxPlayers'] == 5


def test_create_room_rejects_non_boolean_privacy(sio_client, events):
    events(sio_client)
    sio_client.emit('create-room', {'isPrivate': 'false'})
    got = events(sio_client)
    assert got['room-error'][0][1]['kind'] == 'invalid_payload'
    assert 'room-joined' not in got


def test_start_game_runs_and_moves_players_ingame(connect, events, question_provider):
    host = connect('Alice')
    room_id = _create_room(host)
    bob = connect('Bob')
    bob.emit('join-room', room_id)
    events(host)
    events(bob)

    host.emit('start-game', room_id)
    for member in (host, bob):
        got = events(member)
        assert got['game-starting'][0]['roomId'] == room_id
        started = got['game-started'][0]
        assert started['status'] == 'RUNNING'
        assert len(started['questions']) == 3
        assert started['questions'][0]['correctAnswer'] == 'B'
        assert {p['status'] for p in started['players']} == {'INGAME'}
    assert len(question_provider.calls) == 1


def test_start_game_by_non_host_is_forbidden(connect, events, question_provider):
    host = connect('Alice')
    room_id = _create_room(host)
    bob = connect('Bob')
    bob.emit('join-room', room_id)
    events(bob)

    bob.emit('start-game', room_id)
    assert events(bob)['room-error'][0][1] == {'kind': 'forbidden'}
    assert question_provider.calls == []


def test_start_game_failure_reaches_only_the_host(connect, events, question_provider):
    question_provider.fail = True
    host = connect('Alice')
    room_id = _create_room(host)
    bob = connect('Bob')
    bob.emit('join-room', room_id)
    events(host)
    events(bob)

    host.emit('start-game', room_id)
    host_got = events(host)
    bob_got = events(bob)
    assert host_got['room-error'][0] == ['Failed to generate questions', {'kind': 'external_service'}]
    assert 'room-error' not in bob_got
    assert 'game-started' not in bob_got

    host.emit('get-room-users', room_id)
    assert events(host)['room-joined'][0]['status'] == 'WAITING'


def test_join_running_game_enters_ingame(connect, events):
    host = connect('Alice')
    room_id = _create_room(host)
    host.emit('start-game', room_id)
    bob = connect('Bob')
    events(bob)
    bob.emit('join-room', room_id)
    joined = events(bob)['player-joined'][0]
    assert joined['player']['status'] == 'INGAME'


def test_submit_answer_scores_only_the_caller(connect, events):
    host = connect('Alice')
    room_id = _create_room(host)
    bob = connect('Bob')
    bob.emit('join-room', room_id)
    host.emit('start-game', room_id)
    events(host)
    events(bob)

    bob.emit('submit-answer', {'roomId': room_id, 'isCorrect': True})
    for member in (host, bob):
        room = events(member)['answer-correct'][0]
        scores = {name: p['score'] for name, p in _players_by_name(room).items()}
        assert scores == {'Alice': 0, 'Bob': 1}


def test_wrong_answer_is_silent(connect, events):
    host = connect('Alice')
    room_id = _create_room(host)
    host.emit('start-game', room_id)
    events(host)
    host.emit('submit-answer', {'roomId': room_id, 'isCorrect': False})
    got = events(host)
    assert 'answer-correct' not in got
    assert 'room-error' not in got


def test_submit_answer_while_waiting_is_rejected(sio_client, events):
    room_id = _create_room(sio_client)
    events(sio_client)
    sio_client.emit('submit-answer', {'roomId': room_id, 'isCorrect': True})
    assert events(sio_client)['room-error'][0] == ['Game is not running', {'kind': 'invalid_state'}]


def test_player_finished_returns_player_to_lobby(connect, events):
    host = connect('Alice')
    room_id = _create_room(host)
    bob = connect('Bob')
    bob.emit('join-room', room_id)
    host.emit('start-game', room_id)
    events(host)

    bob.emit('player-finished', room_id)
    room = events(host)['player-finished'][0]
    players = _players_by_name(room)
    assert players['Bob']['status'] == 'LOBBY'
    assert players['Alice']['status'] == 'INGAME'
    assert room['status'] == 'RUNNING'


def test_game_over_is_idempotent(connect, events):
    host = connect('Alice')
    room_id = _create_room(host)
    bob = connect('Bob')
    bob.emit('join-room', room_id)
    host.emit('start-game', room_id)
    bob.emit('submit-answer', {'roomId': room_id, 'isCorrect': True})
    bob.emit('submit-answer', {'roomId': room_id, 'isCorrect': True})
    events(host)

    host.emit('game-over', room_id)
    first = events(host)['back-to-room'][0]
    assert first['status'] == 'WAITING'
    assert {p['score'] for p in first['players']} == {0}
    assert {p['status'] for p in first['players']} == {'LOBBY'}
    assert first['results'][0]['name'] == 'Bob'
    assert first['results'][0]['score'] == 2

    host.emit('game-over', room_id)
    second = events(host)['back-to-room'][0]
    assert second['status'] == 'WAITING'
    assert {p['score'] for p in second['players']} == {0}


def test_non_host_leave_notifies_remaining(connect, events):
    host = connect('Alice')
    room_id = _create_room(host)
    bob = connect('Bob')
    bob.emit('join-room', room_id)
    events(host)
    events(bob)

    bob.emit('leave-room', room_id)
    left = events(host)['room-left'][0]
    assert left['playerName'] == 'Bob'
    assert [p['name'] for p in left['players']] == ['Alice']
    assert 'room-left' not in events(bob)

    bob.emit('leave-room', room_id)
    assert events(bob)['room-error'][0] == ['Player not found in room', {'kind': 'not_in_room'}]


def test_host_disconnect_closes_room(connect, events):
    host = connect('Alice')
    room_id = _create_room(host)
    bob = connect('Bob')
    carol = connect('Carol')
    bob.emit('join-room', room_id)
    carol.emit('join-room', room_id)
    events(bob)
    events(carol)

    host.disconnect()

    for member in (bob, carol):
        closed = events(member)['room-closed']
        assert closed == [{'roomId': room_id, 'message': 'Host has left. Room is closed.'}]

    for event, payload in (
        ('get-room-users', room_id),
        ('join-room', room_id),
        ('message', {'roomId': room_id, 'message': 'hello?'}),
        ('game-over', room_id),
    ):
        bob.emit(event, payload)
        assert events(bob)['room-error'][0][1] == {'kind': 'not_found'}


def test_host_leave_evicts_members_from_broadcasts(flask_app, connect, events):
    from witlink import socketio

    host = connect('Alice')
    room_id = _create_room(host)
    bob = connect('Bob')
    bob.emit('join-room', room_id)
    events(host)
    events(bob)

    host.emit('leave-room', room_id)
    assert events(bob)['room-closed'][0]['roomId'] == room_id
    assert 'room-closed' not in events(host)
    assert not flask_app.extensions['witlink'].registry.contains(room_id)
    assert room_id not in socketio.server.manager.rooms.get('/', {})


def test_message_relay(connect, events):
    host = connect('Alice')
    room_id = _create_room(host)
    bob = connect('Bob')
    bob.emit('join-room', room_id)
    outsider = connect('Mallory')
    events(host)
    events(bob)
    events(outsider)

    bob.emit('message', {'roomId': room_id, 'message': 'hi all'})
    relayed = events(host)['message'][0]
    assert relayed['player']['name'] == 'Bob'
    assert relayed['message'] == 'hi all'
    assert events(bob)['message'][0]['message'] == 'hi all'

    outsider.emit('message', {'roomId': room_id, 'message': 'let me in'})
    got = events(outsider)
    assert got['room-error'][0][1] == {'kind': 'not_in_room'}
    assert 'message' not in events(host)
