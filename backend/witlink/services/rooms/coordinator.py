import logging
from contextlib import contextmanager
from typing import Callable, List, Optional

from witlink.errors import (
    AuthenticationError,
    AuthorizationError,
    CallerNotInRoomError,
    CapacityError,
    ExternalServiceError,
    InvalidPayloadError,
    NotFoundError,
    StateError,
)
from witlink.models import Difficulty, Player, PlayerStatus, Question, Room, RoomStatus
from witlink.topics import random_topic
from . import snapshots
from .broadcast import RoomBroadcaster
from .identity import IdentityGate
from .registry import DuplicateRoomError, RoomRegistry


def run_inline(fn, *args):
    fn(*args)


class RoomCoordinator:
    """Room lifecycle state machine.

    Every operation takes the caller's connection id, checks its
    preconditions under the room lock, mutates the room and emits through
    the broadcaster. Failed preconditions raise a ``RoomError`` before any
    state changes or events go out.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        broadcaster: RoomBroadcaster,
        question_provider: Callable[[str, Difficulty], List[Question]],
        identities: Optional[IdentityGate] = None,
        logger: Optional[logging.Logger] = None,
        run_task: Callable = run_inline,
        default_max_players: int = 5,
        pick_topic: Callable[[], str] = random_topic,
    ):
        self.registry = registry
        self.broadcaster = broadcaster
        self.question_provider = question_provider
        self.identities = identities or IdentityGate()
        self.logger = logger or logging.getLogger(__name__)
        self.run_task = run_task
        self.default_max_players = default_max_players
        self.pick_topic = pick_topic

    # ---- helpers ----

    @contextmanager
    def _locked_room(self, room_id):
        room = self.registry.get(room_id)
        with room.lock:
            # Deleted between lookup and lock
            if not self.registry.is_live(room):
                raise NotFoundError()
            yield room

    def _name(self, sid: str) -> str:
        name = self.identities.name_for(sid)
        if name is None:
            raise AuthenticationError()
        return name

    @staticmethod
    def _require_player(room: Room, sid: str) -> Player:
        player = room.find_player(sid)
        if player is None:
            raise CallerNotInRoomError()
        return player

    @staticmethod
    def _require_host(room: Room, sid: str, action: str) -> None:
        if room.host_id != sid:
            raise AuthorizationError(f'Only the host can {action}')

    # ---- connection lifecycle ----

    def connect(self, sid: str, auth) -> str:
        name = self.identities.admit(sid, auth)
        self.logger.info(f"[connect] sid={sid} name={name}")
        return name

    def disconnect(self, sid: str) -> None:
        for room_id in self.registry.rooms_for(sid):
            try:
                with self._locked_room(room_id) as room:
                    self._depart(room, sid, disconnected=True)
            except (NotFoundError, CallerNotInRoomError):
                # Closed or left concurrently
                continue
        self.identities.release(sid)
        self.logger.info(f"[disconnect] sid={sid}")

    # ---- room operations ----

    def create_room(self, caller: str, is_private=True) -> str:
        name = self._name(caller)
        if is_private is None:
            is_private = True
        elif not isinstance(is_private, bool):
            raise InvalidPayloadError('isPrivate must be true or false')
        while True:
            room = Room(
                id=self.registry.allocate_id(),
                host_id=caller,
                topic=self.pick_topic(),
                max_players=self.default_max_players,
                is_private=is_private,
            )
            room.players.append(Player(id=caller, name=name))
            try:
                self.registry.create(room)
                break
            except DuplicateRoomError:
                continue
        self.registry.track(caller, room.id)
        self.broadcaster.join(caller, room.id)
        self.logger.info(f"[create] room={room.id} host={caller} name={name} private={room.is_private}")
        return room.id

    def join_room(self, caller: str, room_id) -> None:
        name = self._name(caller)
        with self._locked_room(room_id) as room:
            if room.find_player(caller) is not None:
                raise StateError('You are already in this room')
            if room.is_full:
                raise CapacityError()
            status = PlayerStatus.INGAME if room.status is RoomStatus.RUNNING else PlayerStatus.LOBBY
            player = Player(id=caller, name=name, status=status)
            room.players.append(player)
            self.registry.track(caller, room.id)
            self.broadcaster.join(caller, room.id)
            self.broadcaster.to_room(room.id, 'player-joined', snapshots.player_joined(room, player))
            self.logger.info(f"[join] room={room.id} sid={caller} name={name} players={len(room.players)}")

    def get_room_users(self, caller: str, room_id) -> None:
        with self._locked_room(room_id) as room:
            self.broadcaster.to_connection(caller, 'room-users', snapshots.room_users(room))
            self.broadcaster.to_connection(caller, 'room-joined', snapshots.room_snapshot(room))

    def update_settings(self, caller: str, room_id, topic, difficulty, max_players) -> None:
        with self._locked_room(room_id) as room:
            self._require_host(room, caller, 'update room settings')
            if room.status is not RoomStatus.WAITING:
                raise StateError('Settings can only be changed while waiting')
            if not isinstance(topic, str) or not topic.strip():
                raise InvalidPayloadError('Topic is required')
            try:
                level = Difficulty.parse(difficulty)
            except ValueError:
                raise InvalidPayloadError('Difficulty must be EASY, MEDIUM or HARD') from None
            # JSON clients may send 4.0 for 4; fractions and numeric strings are refused
            if isinstance(max_players, float) and max_players.is_integer():
                max_players = int(max_players)
            if isinstance(max_players, bool) or not isinstance(max_players, int) or max_players < 1:
                raise InvalidPayloadError('Max players must be a positive whole number')
            capacity = max_players

            room.topic = topic.strip()
            room.difficulty = level
            # Not retroactive: players already over the new limit stay
            room.max_players = capacity
            self.broadcaster.to_room(room.id, 'room-saved', snapshots.room_snapshot(room))
            self.logger.info(
                f"[settings] room={room.id} topic={room.topic!r} difficulty={level.value} max_players={capacity}"
            )

    def start_game(self, caller: str, room_id) -> None:
        with self._locked_room(room_id) as room:
            self._require_host(room, caller, 'start the game')
            if room.status is RoomStatus.STARTING:
                raise StateError('Game is already starting')
            if room.status is RoomStatus.RUNNING:
                raise StateError('Game is already running')
            room.status = RoomStatus.STARTING
            room.start_attempt += 1
            attempt = room.start_attempt
            topic, difficulty = room.topic, room.difficulty
            self.broadcaster.to_room(room.id, 'game-starting', snapshots.game_starting(room))
            self.logger.info(
                f"[start] room={room.id} attempt={attempt} topic={topic!r} difficulty={difficulty.value}"
            )
        # Generation runs outside the room lock
        self.run_task(self._generate_and_start, caller, room.id, attempt, topic, difficulty)

    def _generate_and_start(self, caller, room_id, attempt, topic, difficulty) -> None:
        try:
            questions = self.question_provider(topic, difficulty)
            if not questions:
                raise ExternalServiceError('No questions were generated')
        except ExternalServiceError as exc:
            self.logger.warning(f"[start-failed] room={room_id} attempt={attempt} error={exc}")
            self._abort_start(caller, room_id, attempt, exc)
            return
        except Exception:
            self.logger.exception(f"[start-failed] room={room_id} attempt={attempt} unexpected provider error")
            self._abort_start(caller, room_id, attempt, ExternalServiceError())
            return

        try:
            with self._locked_room(room_id) as room:
                if room.start_attempt != attempt or room.status is not RoomStatus.STARTING:
                    self.logger.info(
                        f"[start-discard] room={room_id} attempt={attempt} current={room.start_attempt} status={room.status.value}"
                    )
                    return
                room.questions = list(questions)
                room.status = RoomStatus.RUNNING
                for player in room.players:
                    player.status = PlayerStatus.INGAME
                self.broadcaster.to_room(room.id, 'game-started', snapshots.room_snapshot(room))
                self.logger.info(f"[started] room={room_id} questions={len(room.questions)} players={len(room.players)}")
        except NotFoundError:
            self.logger.info(f"[start-discard] room={room_id} attempt={attempt} room no longer exists")

    def _abort_start(self, caller, room_id, attempt, exc: ExternalServiceError) -> None:
        try:
            with self._locked_room(room_id) as room:
                if room.start_attempt != attempt or room.status is not RoomStatus.STARTING:
                    return
                room.status = RoomStatus.WAITING
                self.broadcaster.error(caller, exc)
        except NotFoundError:
            self.logger.info(f"[start-discard] room={room_id} attempt={attempt} room no longer exists")

    def submit_answer(self, caller: str, room_id, is_correct) -> None:
        with self._locked_room(room_id) as room:
            if room.status is not RoomStatus.RUNNING:
                raise StateError()
            player = self._require_player(room, caller)
            if is_correct is not True:
                return
            player.score += 1
            self.broadcaster.to_room(room.id, 'answer-correct', snapshots.room_snapshot(room))

    def player_finished(self, caller: str, room_id) -> None:
        with self._locked_room(room_id) as room:
            if room.status is not RoomStatus.RUNNING:
                raise StateError()
            player = self._require_player(room, caller)
            player.status = PlayerStatus.LOBBY
            self.broadcaster.to_room(room.id, 'player-finished', snapshots.room_snapshot(room))

    def game_over(self, caller: str, room_id) -> None:
        with self._locked_room(room_id) as room:
            results = snapshots.game_results(room.players)
            room.status = RoomStatus.WAITING
            for player in room.players:
                player.status = PlayerStatus.LOBBY
                player.score = 0
            self.broadcaster.to_room(room.id, 'back-to-room', snapshots.back_to_room(room, results))
            self.logger.info(f"[game-over] room={room.id} by={caller}")

    def leave_room(self, caller: str, room_id) -> None:
        with self._locked_room(room_id) as room:
            self._depart(room, caller)

    def _depart(self, room: Room, sid: str, disconnected: bool = False) -> None:
        player = room.remove_player(sid)
        if player is None:
            raise CallerNotInRoomError()
        self.registry.untrack(sid, room.id)
        if not disconnected:
            self.broadcaster.leave(sid, room.id)

        if room.host_id == sid:
            self.broadcaster.to_room(room.id, 'room-closed', snapshots.room_closed(room))
            self.broadcaster.close(room.id)
            self.registry.delete(room.id)
            self.logger.info(f"[close] room={room.id} host={sid} left, evicted={len(room.players)}")
        elif not room.players:
            self.registry.delete(room.id)
            self.logger.info(f"[close] room={room.id} empty")
        else:
            self.broadcaster.to_room(room.id, 'room-left', snapshots.room_left(room, player))
            self.logger.info(f"[leave] room={room.id} sid={sid} players={len(room.players)}")

    def message(self, caller: str, room_id, text) -> None:
        with self._locked_room(room_id) as room:
            player = self._require_player(room, caller)
            if not isinstance(text, str):
                raise InvalidPayloadError('Message must be text')
            self.broadcaster.to_room(room.id, 'message', snapshots.chat_message(room, player, text))

    # ---- reads ----

    def questions_for(self, room_id) -> Optional[List[Question]]:
        with self._locked_room(room_id) as room:
            return list(room.questions) if room.questions is not None else None
