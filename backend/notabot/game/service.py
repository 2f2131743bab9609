from __future__ import annotations

import asyncio
import logging
import random
import uuid
from typing import Awaitable, Callable

from ..ai.provider import FALLBACK_ANSWERS, AnswerProvider
from ..config import Config
from .aliases import generate_alias, generate_room_code, normalize_room_code, shuffle_aliases
from .clock import Clock, SystemClock
from .models import AI_PLAYER_NAME, Answer, Player, Room
from .questions import pick_question
from .store import RoomStore, VersionConflict


logger = logging.getLogger(__name__)

ALIAS_ATTEMPTS = 50

Mutation = Callable[[Room], bool]
AsyncMutation = Callable[[Room], Awaitable[bool]]


def max_votes_for(total_players: int) -> int:
    return 1 if total_players <= 5 else 2


def phase_budget_sec(room: Room) -> int:
    if room.status == "answering":
        return room.answering_time
    if room.status == "voting":
        return room.voting_time
    return 0


def phase_expired(room: Room, now: int) -> bool:
    if room.status not in ("answering", "voting"):
        return False
    return now - room.round_start_time >= phase_budget_sec(room) * 1000


def time_left(room: Room, now: int) -> int:
    """Whole seconds left in the current phase; 0 outside answering/voting."""
    if room.status not in ("answering", "voting"):
        return 0
    elapsed = (now - room.round_start_time) // 1000
    return max(0, phase_budget_sec(room) - elapsed)


def all_ai_eliminated(room: Room) -> bool:
    return all(p.eliminated for p in room.ai_players)


def is_game_over(room: Room) -> bool:
    return all_ai_eliminated(room) or room.current_round >= room.max_rounds


def room_public_state(room: Room, viewer_id: str | None = None, now: int | None = None) -> dict:
    """Room payload as one viewer may see it.

    While a game is running nobody learns who is an AI: other players are
    listed by alias only, ordered by alias so that roster position (AI seats
    are appended last) carries no signal. Answers for the current round are
    shown once voting starts.
    """
    in_game = room.status in ("answering", "voting")
    players = sorted(room.players, key=lambda p: p.alias) if in_game else list(room.players)

    player_payload = []
    for p in players:
        d = {
            "id": p.id,
            "alias": p.alias,
            "isHost": p.is_host,
            "eliminated": p.eliminated,
            "hasAnswered": p.has_answered(room.current_round) if room.current_round else False,
            "votesReceived": p.votes_received,
            "totalVotesReceived": p.total_votes_received,
        }
        if not in_game or p.id == viewer_id or p.eliminated:
            d["name"] = p.name
            d["isAI"] = p.is_ai
        if p.id == viewer_id:
            d["votes"] = list(p.votes)
        player_payload.append(d)

    payload = {
        "id": room.id,
        "code": room.code,
        "hostPlayerId": room.host_player_id,
        "status": room.status,
        "currentRound": room.current_round,
        "maxRounds": room.max_rounds,
        "aiCount": room.ai_count,
        "currentQuestion": room.current_question.to_dict() if room.current_question else None,
        "roundStartTime": room.round_start_time,
        "answeringTime": room.answering_time,
        "votingTime": room.voting_time,
        "maxVotesPerPlayer": room.max_votes_per_player,
        "roundResult": room.round_result,
        "gameResult": room.game_result,
        "humansWon": room.humans_won,
        "players": player_payload,
    }

    if room.status in ("voting", "ended") and room.current_round:
        answers = []
        for p in sorted(room.players, key=lambda p: p.alias):
            a = p.answer_for(room.current_round)
            if a is not None:
                answers.append({"playerId": p.id, "alias": p.alias, "content": a.content})
        payload["answers"] = answers

    if now is not None:
        payload["timeLeft"] = time_left(room, now)

    return payload


class GameService:
    """Room lifecycle: waiting -> answering -> voting -> answering | ended.

    Every operation reads the whole room document, mutates it in memory and
    writes it back with the version it read. On a version conflict the
    operation starts over from a fresh read, up to ``max_write_retries``
    times. Failures (unknown room or player, wrong phase, vote quota) come
    back as ``None``/``False``; nothing is raised to the caller.
    """

    def __init__(
        self,
        store: RoomStore,
        provider: AnswerProvider,
        clock: Clock | None = None,
        rng: random.Random | None = None,
        answering_time: int | None = None,
        voting_time: int | None = None,
        max_write_retries: int | None = None,
    ):
        self.store = store
        self.provider = provider
        self.clock = clock or SystemClock()
        self.rng = rng or random.Random()
        self.answering_time = answering_time or Config.ANSWERING_TIME_SEC
        self.voting_time = voting_time or Config.VOTING_TIME_SEC
        self.max_write_retries = max_write_retries if max_write_retries is not None else Config.MAX_WRITE_RETRIES

    # ------------------------------------------------------------------
    # Read-modify-write
    # ------------------------------------------------------------------

    def _apply(self, room_id: str, mutate: Mutation) -> Room | None:
        for _ in range(self.max_write_retries + 1):
            room = self.store.get(room_id)
            if room is None:
                return None
            expected = room.version
            if not mutate(room):
                return None
            try:
                return self.store.put(room, expected)
            except VersionConflict as e:
                logger.warning(f"Write conflict, retrying: {e}")

        logger.warning(f"Room {room_id}: gave up after {self.max_write_retries + 1} conflicting writes")
        return None

    async def _apply_async(self, room_id: str, mutate: AsyncMutation) -> Room | None:
        for _ in range(self.max_write_retries + 1):
            room = self.store.get(room_id)
            if room is None:
                return None
            expected = room.version
            if not await mutate(room):
                return None
            try:
                return self.store.put(room, expected)
            except VersionConflict as e:
                logger.warning(f"Write conflict, retrying: {e}")

        logger.warning(f"Room {room_id}: gave up after {self.max_write_retries + 1} conflicting writes")
        return None

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_room(self, room_id: str) -> Room | None:
        return self.store.get(room_id)

    def find_room_by_code(self, code: str) -> Room | None:
        matches = self.store.find_by_field("code", normalize_room_code(code))
        active = [r for r in matches if r.status != "ended"]
        if active:
            return active[0]
        return matches[0] if matches else None

    # ------------------------------------------------------------------
    # Lobby
    # ------------------------------------------------------------------

    def _new_code(self) -> str:
        code = generate_room_code(self.rng)
        while any(r.status != "ended" for r in self.store.find_by_field("code", code)):
            code = generate_room_code(self.rng)
        return code

    def _new_alias(self, room: Room) -> str:
        taken = {p.alias for p in room.players}
        alias = generate_alias(self.rng)
        attempts = 1
        while alias in taken and attempts < ALIAS_ATTEMPTS:
            alias = generate_alias(self.rng)
            attempts += 1
        return alias

    def create_room(self, player_name: str, ai_count: int) -> Room:
        host = Player(
            id=f"player_{uuid.uuid4().hex[:12]}",
            name=player_name,
            is_host=True,
        )
        room = Room(
            id=f"room_{uuid.uuid4().hex}",
            code=self._new_code(),
            host_player_id=host.id,
            ai_count=max(0, int(ai_count)),
            answering_time=self.answering_time,
            voting_time=self.voting_time,
            created_at=self.clock.now(),
        )
        host.alias = self._new_alias(room)
        room.players.append(host)

        room = self.store.put(room, expected_version=0)
        logger.info(f"Room {room.code} created by {player_name} ({room.ai_count} AI)")
        return room

    def join_room(self, code: str, player_name: str) -> Room | None:
        found = self.find_room_by_code(code)
        if found is None:
            logger.debug(f"Join rejected: no room with code {code!r}")
            return None

        def _join(room: Room) -> bool:
            if room.status != "waiting":
                logger.debug(f"Join rejected: room {room.code} is {room.status}")
                return False
            player = Player(id=f"player_{uuid.uuid4().hex[:12]}", name=player_name)
            player.alias = self._new_alias(room)
            room.players.append(player)
            return True

        room = self._apply(found.id, _join)
        if room is not None:
            logger.info(f"{player_name} joined room {room.code}")
        return room

    def start_game(self, room_id: str) -> Room | None:
        def _start(room: Room) -> bool:
            if room.status != "waiting":
                logger.debug(f"Start rejected: room {room.code} is {room.status}")
                return False

            for _ in range(room.ai_count):
                ai = Player(id=f"player_{uuid.uuid4().hex[:12]}", name=AI_PLAYER_NAME, is_ai=True)
                ai.alias = self._new_alias(room)
                room.players.append(ai)

            # Permute the existing aliases over everyone; never regenerate.
            aliases = shuffle_aliases([p.alias for p in room.players], self.rng)
            for player, alias in zip(room.players, aliases):
                player.alias = alias

            total = len(room.players)
            room.max_rounds = total // 2
            room.max_votes_per_player = max_votes_for(total)
            self._start_answering(room, round_no=1)
            return True

        room = self._apply(room_id, _start)
        if room is not None:
            logger.info(
                f"Room {room.code} started: {len(room.players)} players, "
                f"{room.max_rounds} rounds, {room.max_votes_per_player} vote(s) each"
            )
        return room

    # ------------------------------------------------------------------
    # Answering
    # ------------------------------------------------------------------

    def _start_answering(self, room: Room, round_no: int) -> None:
        room.current_round = round_no
        room.current_question = pick_question(self.rng)
        room.status = "answering"
        room.round_start_time = self.clock.now()

    def _start_voting(self, room: Room) -> None:
        room.status = "voting"
        room.round_start_time = self.clock.now()
        logger.info(f"Room {room.code} round {room.current_round}: voting")

    async def _generate(self, question_text: str, peer_answers: list[str]) -> str:
        try:
            return await self.provider.generate(question_text, peer_answers)
        except Exception as e:
            logger.warning(f"Answer provider raised, using filler: {e}")
            return self.rng.choice(FALLBACK_ANSWERS)

    async def _fill_ai_answers(self, room: Room) -> None:
        question = room.current_question
        if question is None:
            return

        round_no = room.current_round
        pending = [
            p for p in room.ai_players
            if not p.eliminated and not p.has_answered(round_no)
        ]
        if not pending:
            return

        peer_answers = []
        for p in room.humans:
            a = p.answer_for(round_no)
            if a is not None:
                peer_answers.append(a.content)

        contents = await asyncio.gather(
            *(self._generate(question.text, peer_answers) for _ in pending)
        )
        for ai, content in zip(pending, contents):
            ai.answers.append(Answer(question_id=question.id, content=content, round=round_no))

    async def submit_answer(self, room_id: str, player_id: str, answer_text: str) -> bool:
        async def _answer(room: Room) -> bool:
            player = room.get_player(player_id)
            if player is None or room.current_question is None:
                return False
            if room.status != "answering" or player.eliminated:
                logger.debug(f"Answer rejected: {player_id} in room {room.code} ({room.status})")
                return False
            if player.has_answered(room.current_round):
                logger.debug(f"Answer rejected: {player_id} already answered round {room.current_round}")
                return False

            player.answers.append(
                Answer(
                    question_id=room.current_question.id,
                    content=answer_text,
                    round=room.current_round,
                )
            )
            await self._fill_ai_answers(room)

            if all(p.has_answered(room.current_round) for p in room.active_players):
                self._start_voting(room)
            return True

        return await self._apply_async(room_id, _answer) is not None

    # ------------------------------------------------------------------
    # Voting
    # ------------------------------------------------------------------

    def submit_vote(self, room_id: str, voter_id: str, target_id: str, add: bool) -> bool:
        def _vote(room: Room) -> bool:
            voter = room.get_player(voter_id)
            target = room.get_player(target_id)
            if voter is None or target is None:
                return False
            if room.status != "voting":
                logger.debug(f"Vote rejected: room {room.code} is {room.status}")
                return False

            if not add:
                if target_id in voter.votes:
                    voter.votes.remove(target_id)
                    target.votes_received = max(0, target.votes_received - 1)
                return True

            if voter.eliminated or target.eliminated or voter_id == target_id:
                logger.debug(f"Vote rejected: {voter_id} -> {target_id} not allowed")
                return False
            if len(voter.votes) >= room.max_votes_per_player or target_id in voter.votes:
                logger.debug(f"Vote rejected: {voter_id} over quota or duplicate")
                return False

            voter.votes.append(target_id)
            target.votes_received += 1
            return True

        return self._apply(room_id, _vote) is not None

    def _cast_ai_votes(self, room: Room) -> None:
        quota = room.max_votes_per_player
        for ai in room.ai_players:
            if ai.eliminated or len(ai.votes) >= quota:
                continue
            eligible = [p for p in room.humans if not p.eliminated and p.id not in ai.votes]
            picks = self.rng.sample(eligible, min(quota - len(ai.votes), len(eligible)))
            for target in picks:
                ai.votes.append(target.id)
                target.votes_received += 1

    @staticmethod
    def _clear_votes(room: Room) -> None:
        for p in room.players:
            p.votes = []
            p.votes_received = 0

    def _finish(self, room: Room) -> None:
        room.status = "ended"
        room.humans_won = all_ai_eliminated(room)
        if room.humans_won:
            room.game_result = "Humans win! Every AI impersonator was found."
        else:
            survivors = sum(1 for p in room.ai_players if not p.eliminated)
            room.game_result = f"AI wins! {survivors} impersonator(s) went undetected."
        logger.info(f"Room {room.code} ended: {room.game_result}")

    def _resolve_votes(self, room: Room) -> None:
        self._cast_ai_votes(room)

        for p in room.players:
            p.total_votes_received += p.votes_received

        human_votes = sum(len(p.votes) for p in room.humans)
        if human_votes == 0:
            room.round_result = "No votes were cast by human players. No one was eliminated."
            self._clear_votes(room)
            if room.current_round >= room.max_rounds:
                self._finish(room)
            else:
                self._start_answering(room, room.current_round + 1)
            return

        candidates = room.active_players
        top = max((p.votes_received for p in candidates), default=0)
        if top == 0:
            room.round_result = "No one was eliminated."
        else:
            # First in roster order wins a tie.
            selected = next(p for p in candidates if p.votes_received == top)
            if selected.is_ai:
                selected.eliminated = True
                room.round_result = f"{selected.alias} was eliminated! They were an AI bot."
            else:
                room.round_result = (
                    f"{selected.alias} received the most votes but was human! No one was eliminated."
                )
        logger.info(f"Room {room.code} round {room.current_round}: {room.round_result}")

        if is_game_over(room):
            self._finish(room)
            return

        self._clear_votes(room)
        self._start_answering(room, room.current_round + 1)

    def end_voting_round(self, room_id: str) -> Room | None:
        def _end(room: Room) -> bool:
            if room.status != "voting":
                logger.debug(f"End of voting rejected: room {room.code} is {room.status}")
                return False
            self._resolve_votes(room)
            return True

        return self._apply(room_id, _end)

    # ------------------------------------------------------------------
    # Clock-driven reconciliation
    # ------------------------------------------------------------------

    async def check_and_update_game_state(self, room_id: str) -> Room | None:
        room = self.store.get(room_id)
        if room is None:
            return None
        if not phase_expired(room, self.clock.now()):
            return room

        if room.status == "voting":
            return self.end_voting_round(room_id) or self.store.get(room_id)

        async def _expire_answering(r: Room) -> bool:
            if r.status != "answering" or not phase_expired(r, self.clock.now()):
                return False
            await self._fill_ai_answers(r)
            logger.info(f"Room {r.code} round {r.current_round}: answering time is up")
            self._start_voting(r)
            return True

        return await self._apply_async(room_id, _expire_answering) or self.store.get(room_id)
