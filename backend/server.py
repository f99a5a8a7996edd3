import asyncio
import logging
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, ValidationError

from config import CONFIG
from economy import Economy
from scenarios import list_scenarios

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Policy Economy Simulator")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ClientCommand(BaseModel):
    """A command from the client. Fields beyond `type` depend on the command."""
    model_config = ConfigDict(extra="allow")

    type: str
    policy: Optional[str] = None
    value: Any = None
    speed: Optional[int] = None
    scenario: Optional[str] = None
    seed: Optional[int] = None
    eventId: Optional[str] = None
    choiceId: Optional[str] = None
    eventType: Optional[str] = None


class SimulationRunner:
    """
    Drives one Economy from an asyncio loop.

    Each frame runs `speed` steps back to back, then yields. Automatic
    advancement stops while a choice is pending and after the scenario
    completes or fails.
    """

    def __init__(self):
        self.economy: Optional[Economy] = None
        self.is_running = False
        self.paused = False
        self.speed = CONFIG.runner.default_speed
        self.active_websocket: Optional[WebSocket] = None

    def initialize(self, scenario: Optional[str] = None, seed: Optional[int] = None) -> None:
        logger.info(f"Initializing economy for scenario {scenario or 'default'}")
        self.economy = Economy(scenario, seed=seed)
        self.paused = False

    def ensure_economy(self) -> Economy:
        if self.economy is None:
            self.initialize()
        return self.economy

    def handle_command(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Validate and apply one client command.

        Returns:
            Notifications to send back to the client
        """
        try:
            command = ClientCommand.model_validate(data)
        except ValidationError as exc:
            logger.warning(f"Ignoring invalid command payload: {exc.errors()}")
            return []

        economy = self.ensure_economy()
        if command.type == "SET_SPEED":
            if command.speed is None:
                logger.warning("Ignoring SET_SPEED without a speed")
                return []
            self.speed = max(1, min(CONFIG.runner.max_speed, command.speed))
            return []
        if command.type == "PAUSE":
            self.paused = True
            return []
        if command.type == "RESUME":
            self.paused = False
            return []

        notifications = economy.apply_command(command.model_dump(exclude_none=True))
        if command.type == "RESET":
            self.paused = False
        return notifications

    def advance(self) -> List[Dict[str, Any]]:
        """
        Run one frame of steps.

        Returns:
            Every notification produced, plus a STATE_UPDATE when a
            snapshot interval was crossed during the frame
        """
        economy = self.ensure_economy()
        if self.paused or economy.completed or economy.failed:
            return []

        notifications: List[Dict[str, Any]] = []
        snapshot_due = False
        for _ in range(self.speed):
            if economy.awaiting_choice:
                break
            notifications.extend(economy.step())
            if economy.tick % CONFIG.time.snapshot_interval == 0:
                snapshot_due = True
            if economy.completed or economy.failed:
                self.paused = True
                snapshot_due = True
                break

        if snapshot_due:
            notifications.append({"type": "STATE_UPDATE", "snapshot": economy.get_snapshot()})
        return notifications

    async def run_loop(self):
        logger.info("Starting simulation loop")
        try:
            while self.is_running and self.active_websocket:
                for message in self.advance():
                    await self.active_websocket.send_json(message)
                await asyncio.sleep(CONFIG.runner.frame_interval)
        except WebSocketDisconnect:
            logger.info("Client went away during a frame")
        except Exception as exc:
            logger.exception("Simulation loop error")
            if self.active_websocket:
                await self.active_websocket.send_json({"error": str(exc)})
        finally:
            self.is_running = False


runner = SimulationRunner()


@app.get("/scenarios")
async def get_scenarios():
    return list_scenarios()


@app.get("/snapshot")
async def get_snapshot():
    return runner.ensure_economy().get_snapshot()


@app.post("/command")
async def post_command(data: Dict[str, Any]):
    return {"notifications": runner.handle_command(data)}


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()
    runner.active_websocket = websocket
    logger.info("WebSocket connected")

    economy = runner.ensure_economy()
    await websocket.send_json({"type": "STATE_UPDATE", "snapshot": economy.get_snapshot()})
    if not runner.is_running:
        runner.is_running = True
        asyncio.create_task(runner.run_loop())

    try:
        while True:
            data = await websocket.receive_json()
            if not isinstance(data, dict):
                logger.warning(f"Ignoring non-object message: {data!r}")
                continue
            for message in runner.handle_command(data):
                await websocket.send_json(message)
    except WebSocketDisconnect:
        runner.is_running = False
        runner.active_websocket = None
        logger.info("Client disconnected")


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
