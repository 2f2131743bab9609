from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal


RoomStatus = Literal["waiting", "answering", "voting", "ended"]

ROOM_STATUSES: tuple[str, ...] = ("waiting", "answering", "voting", "ended")

AI_PLAYER_NAME = "AI Bot"


@dataclass(frozen=True)
class Question:
    id: str
    text: str

    def to_dict(self) -> dict:
        return {"id": self.id, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict) -> Question:
        return cls(id=str(data["id"]), text=str(data["text"]))


@dataclass(frozen=True)
class Answer:
    question_id: str
    content: str
    round: int

    def to_dict(self) -> dict:
        return {"questionId": self.question_id, "content": self.content, "round": self.round}

    @classmethod
    def from_dict(cls, data: dict) -> Answer:
        return cls(
            question_id=str(data["questionId"]),
            content=str(data["content"]),
            round=int(data["round"]),
        )


@dataclass
class Player:
    id: str
    name: str
    alias: str = ""
    is_ai: bool = False
    is_host: bool = False
    eliminated: bool = False
    answers: list[Answer] = field(default_factory=list)
    # Target ids this player has outstanding in the current voting round.
    votes: list[str] = field(default_factory=list)
    votes_received: int = 0
    total_votes_received: int = 0

    def answer_for(self, round_no: int) -> Answer | None:
        for a in self.answers:
            if a.round == round_no:
                return a
        return None

    def has_answered(self, round_no: int) -> bool:
        return self.answer_for(round_no) is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "alias": self.alias,
            "isAI": self.is_ai,
            "isHost": self.is_host,
            "eliminated": self.eliminated,
            "answers": [a.to_dict() for a in self.answers],
            "votes": list(self.votes),
            "votesReceived": self.votes_received,
            "totalVotesReceived": self.total_votes_received,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Player:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            alias=str(data.get("alias", "")),
            is_ai=bool(data.get("isAI", False)),
            is_host=bool(data.get("isHost", False)),
            eliminated=bool(data.get("eliminated", False)),
            answers=[Answer.from_dict(a) for a in data.get("answers", [])],
            votes=[str(v) for v in data.get("votes", [])],
            votes_received=int(data.get("votesReceived", 0)),
            total_votes_received=int(data.get("totalVotesReceived", 0)),
        )


@dataclass
class Room:
    id: str
    code: str
    host_player_id: str
    players: list[Player] = field(default_factory=list)
    status: RoomStatus = "waiting"
    current_round: int = 0
    # Computed at start from the full roster.
    max_rounds: int = 0
    ai_count: int = 0
    current_question: Question | None = None
    round_start_time: int = 0
    answering_time: int = 45
    voting_time: int = 30
    max_votes_per_player: int = 0
    round_result: str = ""
    game_result: str = ""
    humans_won: bool | None = None
    version: int = 0
    created_at: int = 0

    def get_player(self, player_id: str) -> Player | None:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    @property
    def humans(self) -> list[Player]:
        return [p for p in self.players if not p.is_ai]

    @property
    def ai_players(self) -> list[Player]:
        return [p for p in self.players if p.is_ai]

    @property
    def active_players(self) -> list[Player]:
        return [p for p in self.players if not p.eliminated]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "hostPlayerId": self.host_player_id,
            "players": [p.to_dict() for p in self.players],
            "status": self.status,
            "currentRound": self.current_round,
            "maxRounds": self.max_rounds,
            "aiCount": self.ai_count,
            "currentQuestion": self.current_question.to_dict() if self.current_question else None,
            "roundStartTime": self.round_start_time,
            "answeringTime": self.answering_time,
            "votingTime": self.voting_time,
            "maxVotesPerPlayer": self.max_votes_per_player,
            "roundResult": self.round_result,
            "gameResult": self.game_result,
            "humansWon": self.humans_won,
            "version": self.version,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Room:
        status = data.get("status", "waiting")
        if status not in ROOM_STATUSES:
            raise ValueError(f"unknown room status: {status!r}")

        question = data.get("currentQuestion")
        humans_won = data.get("humansWon")
        return cls(
            id=str(data["id"]),
            code=str(data["code"]),
            host_player_id=str(data["hostPlayerId"]),
            players=[Player.from_dict(p) for p in data.get("players", [])],
            status=status,
            current_round=int(data.get("currentRound", 0)),
            max_rounds=int(data.get("maxRounds", 0)),
            ai_count=int(data.get("aiCount", 0)),
            current_question=Question.from_dict(question) if question else None,
            round_start_time=int(data.get("roundStartTime", 0)),
            answering_time=int(data.get("answeringTime", 45)),
            voting_time=int(data.get("votingTime", 30)),
            max_votes_per_player=int(data.get("maxVotesPerPlayer", 0)),
            round_result=str(data.get("roundResult", "")),
            game_result=str(data.get("gameResult", "")),
            humans_won=None if humans_won is None else bool(humans_won),
            version=int(data.get("version", 0)),
            created_at=int(data.get("createdAt", 0)),
        )
