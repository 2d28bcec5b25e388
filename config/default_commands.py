"""
Built-in command catalog used to seed commands.json on first start.
"""
import copy
from typing import Dict, Any, List


# Ordered categories, each with an ordered list of operations.
# Ids and indices follow the interface's parameter map; id 0 marks a UI-only parameter.
DEFAULT_COMMAND_CATEGORIES: List[Dict[str, Any]] = [
    {
        "command": "output",
        "name": "Output",
        "operations": [
            {"command": "monitoring", "name": "Monitoring", "type": "Trim", "id": 8, "indices": [0, 1], "min": -100, "max": 0},
            {"command": "phones", "name": "Phones", "type": "Trim", "id": 8, "indices": [2, 3], "min": -100, "max": 0},
            {"command": "listening", "name": "Listening", "type": "Trim", "id": 0, "indices": [], "min": -100, "max": 0},
        ],
    },
    {
        "command": "input",
        "name": "Input",
        "operations": [
            {"command": "in1", "name": "In 1 Gain", "type": "Gain", "id": 2, "indices": [0], "min": 0, "max": 60},
            {"command": "in2", "name": "In 2 Gain", "type": "Gain", "id": 2, "indices": [1], "min": 0, "max": 60},
            {"command": "in1-2", "name": "In 1-2 Gain", "type": "Gain", "id": 2, "indices": [0, 1], "min": 0, "max": 60},
            {"command": "pad1", "name": "In 1 Pad", "type": "Toggle", "id": 3, "indices": [0], "onValue": 1, "offValue": 0},
            {"command": "pad2", "name": "In 2 Pad", "type": "Toggle", "id": 3, "indices": [1], "onValue": 1, "offValue": 0},
            {"command": "phantom1", "name": "In 1 48V", "type": "Toggle", "id": 4, "indices": [0], "onValue": 1, "offValue": 0},
            {"command": "phantom2", "name": "In 2 48V", "type": "Toggle", "id": 4, "indices": [1], "onValue": 1, "offValue": 0},
        ],
    },
    {
        "command": "main",
        "name": "Main Mix",
        "operations": [
            {"command": "in1", "name": "In 1", "type": "mixvol", "id": 72, "indices": [0], "muteId": 73, "muteIndices": [0]},
            {"command": "in2", "name": "In 2", "type": "mixvol", "id": 72, "indices": [1], "muteId": 73, "muteIndices": [1]},
            {"command": "loopback", "name": "Loopback", "type": "mixvol", "id": 72, "indices": [4, 5], "muteId": 73, "muteIndices": [4, 5]},
            {"command": "master", "name": "Master", "type": "mixvol", "id": 76, "indices": [0], "muteId": 77, "muteIndices": [0]},
        ],
    },
    {
        "command": "mix1",
        "name": "Mix 1",
        "operations": [
            {"command": "in1", "name": "In 1", "type": "mixvol", "id": 80, "indices": [0], "muteId": 81, "muteIndices": [0]},
            {"command": "in2", "name": "In 2", "type": "mixvol", "id": 80, "indices": [1], "muteId": 81, "muteIndices": [1]},
            {"command": "master", "name": "Master", "type": "mixvol", "id": 84, "indices": [0], "muteId": 85, "muteIndices": [0]},
        ],
    },
]


def get_default_commands() -> List[Dict[str, Any]]:
    """Get a private copy of the default catalog document."""
    return copy.deepcopy(DEFAULT_COMMAND_CATEGORIES)
