import secrets
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

# Uppercase letters and digits without the easily confused 0/O and 1/I
ROOM_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'


class Difficulty(str, Enum):
    EASY = 'EASY'
    MEDIUM = 'MEDIUM'
    HARD = 'HARD'

    @property
    def seconds_per_question(self) -> int:
        return {'EASY': 30, 'MEDIUM': 45, 'HARD': 60}[self.value]

    @classmethod
    def parse(cls, value) -> 'Difficulty':
        """Case-insensitive lookup; raises ValueError for unknown values."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f'Unknown difficulty: {value!r}')
        return cls(value.strip().upper())


class RoomStatus(str, Enum):
    WAITING = 'WAITING'
    STARTING = 'STARTING'
    RUNNING = 'RUNNING'


class PlayerStatus(str, Enum):
    LOBBY = 'LOBBY'
    INGAME = 'INGAME'


class AnswerKey(str, Enum):
    A = 'A'
    B = 'B'
    C = 'C'
    D = 'D'


@dataclass(frozen=True)
class Question:
    text: str
    options: tuple
    correct_answer: AnswerKey

    def to_dict(self):
        return {
            'question': self.text,
            'options': list(self.options),
            'correctAnswer': self.correct_answer.value,
        }


@dataclass
class Player:
    id: str
    name: str
    score: int = 0
    status: PlayerStatus = PlayerStatus.LOBBY

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'score': self.score,
            'status': self.status.value,
        }


@dataclass
class Room:
    id: str
    host_id: str
    topic: str = ''
    difficulty: Difficulty = Difficulty.EASY
    max_players: int = 5
    is_private: bool = True
    status: RoomStatus = RoomStatus.WAITING
    players: List[Player] = field(default_factory=list)
    questions: Optional[List[Question]] = None
    # Bumped on every start-game; late generation results carry the old value
    start_attempt: int = 0
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def find_player(self, player_id: str) -> Optional[Player]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def remove_player(self, player_id: str) -> Optional[Player]:
        player = self.find_player(player_id)
        if player is not None:
            self.players.remove(player)
        return player

    @property
    def is_full(self) -> bool:
        return len(self.players) >= self.max_players


def generate_room_code(length=6):
    """Generate a short, human-typeable room code.

    Uniqueness against live rooms is checked by the registry.
    """
    return ''.join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(length))
