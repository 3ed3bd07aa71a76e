"""Wire payloads for room events.

Each event has its own pydantic model whose field names are the wire keys.
Payloads are built from the room at emit time and dumped to plain dicts, so
clients never receive internal fields such as locks or start counters.
"""
from typing import List, Optional

from pydantic import BaseModel

from witlink.models import Player, Room

SNAPSHOT_VERSION = 1

HOST_LEFT_MESSAGE = 'Host has left. Room is closed.'


class PlayerSnapshot(BaseModel):
    id: str
    name: str
    score: int
    status: str


class QuestionSnapshot(BaseModel):
    question: str
    options: List[str]
    correctAnswer: str


class RoomSnapshot(BaseModel):
    version: int = SNAPSHOT_VERSION
    id: str
    topic: str
    difficulty: str
    secondsPerQuestion: int
    maxPlayers: int
    isPrivate: bool
    status: str
    hostId: str
    players: List[PlayerSnapshot]
    questions: Optional[List[QuestionSnapshot]] = None


class PlayerResult(BaseModel):
    id: str
    name: str
    score: int


class BackToRoom(RoomSnapshot):
    results: List[PlayerResult]


class PlayerJoined(BaseModel):
    roomId: str
    player: PlayerSnapshot
    players: List[PlayerSnapshot]


class RoomUsers(BaseModel):
    roomId: str
    host: str
    players: List[PlayerSnapshot]


class GameStarting(BaseModel):
    roomId: str
    topic: str
    difficulty: str


class RoomLeft(BaseModel):
    roomId: str
    playerId: str
    playerName: str
    players: List[PlayerSnapshot]


class RoomClosed(BaseModel):
    roomId: str
    message: str = HOST_LEFT_MESSAGE


class ChatAuthor(BaseModel):
    id: str
    name: str


class ChatMessage(BaseModel):
    roomId: str
    player: ChatAuthor
    message: str


def _player(player: Player) -> PlayerSnapshot:
    return PlayerSnapshot(**player.to_dict())


def _roster(room: Room) -> List[PlayerSnapshot]:
    return [_player(p) for p in room.players]


def _room_fields(room: Room) -> dict:
    questions = None
    if room.questions is not None:
        questions = [QuestionSnapshot(**q.to_dict()) for q in room.questions]
    return dict(
        id=room.id,
        topic=room.topic,
        difficulty=room.difficulty.value,
        secondsPerQuestion=room.difficulty.seconds_per_question,
        maxPlayers=room.max_players,
        isPrivate=room.is_private,
        status=room.status.value,
        hostId=room.host_id,
        players=_roster(room),
        questions=questions,
    )


def room_snapshot(room: Room) -> dict:
    return RoomSnapshot(**_room_fields(room)).model_dump()


def player_joined(room: Room, player: Player) -> dict:
    return PlayerJoined(roomId=room.id, player=_player(player), players=_roster(room)).model_dump()


def room_users(room: Room) -> dict:
    return RoomUsers(roomId=room.id, host=room.host_id, players=_roster(room)).model_dump()


def game_starting(room: Room) -> dict:
    return GameStarting(roomId=room.id, topic=room.topic, difficulty=room.difficulty.value).model_dump()


def game_results(players) -> List[PlayerResult]:
    """Final standings, highest score first; ties keep join order."""
    ranked = sorted(players, key=lambda p: -p.score)
    return [PlayerResult(id=p.id, name=p.name, score=p.score) for p in ranked]


def back_to_room(room: Room, results: List[PlayerResult]) -> dict:
    return BackToRoom(**_room_fields(room), results=results).model_dump()


def room_left(room: Room, player: Player) -> dict:
    return RoomLeft(
        roomId=room.id, playerId=player.id, playerName=player.name, players=_roster(room)
    ).model_dump()


def room_closed(room: Room) -> dict:
    return RoomClosed(roomId=room.id).model_dump()


def chat_message(room: Room, player: Player, text: str) -> dict:
    return ChatMessage(
        roomId=room.id, player=ChatAuthor(id=player.id, name=player.name), message=text
    ).model_dump()
