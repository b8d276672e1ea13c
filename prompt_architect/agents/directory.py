"""
Prompt Architect Agent Directory

Ordered, immutable table of pipeline agents: identifier, display data,
role instructions and model tier. The orchestrator loop is driven from this
table, so stages are added or reordered by editing data only.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, List, Tuple

from prompt_architect.core.constants import ModelTier
from prompt_architect.core.exceptions import UnknownStageError


@dataclass(frozen=True)
class AgentDirectoryEntry:
    """Role instructions for one pipeline stage."""
    id: str
    name: str
    description: str
    instructions: str
    tier: ModelTier = ModelTier.FAST


class AgentDirectory:
    """
    Read-only ordered mapping from stage identifier to AgentDirectoryEntry.

    The last entry is the synthesis stage whose output is the artifact.
    """

    def __init__(self, entries: Tuple[AgentDirectoryEntry, ...]):
        if not entries:
            raise ValueError("AgentDirectory requires at least one entry")
        ids = [entry.id for entry in entries]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate stage identifiers: {ids}")
        self._entries = tuple(entries)
        self._by_id: Dict[str, AgentDirectoryEntry] = {entry.id: entry for entry in self._entries}

    def __iter__(self) -> Iterator[AgentDirectoryEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, stage_id: str) -> bool:
        return stage_id in self._by_id

    def get(self, stage_id: str) -> AgentDirectoryEntry:
        try:
            return self._by_id[stage_id]
        except KeyError:
            raise UnknownStageError(stage_id)

    @property
    def stage_ids(self) -> List[str]:
        return [entry.id for entry in self._entries]

    @property
    def final_stage_id(self) -> str:
        return self._entries[-1].id


AGENT_ENTRIES: Tuple[AgentDirectoryEntry, ...] = (
    AgentDirectoryEntry(
        id="analyst",
        name="Subject Specialist",
        description="Deconstructing subjects, actions, and environmental persistence.",
        instructions="""
ROLE: SUBJECT ONTOLOGIST (VISION PHASE)
TASK: Identify all distinct entities. Define collision physics, weight, and surface interaction.
Note material types: PBR textures, organic matter, or synthetic composites.
""",
    ),
    AgentDirectoryEntry(
        id="style",
        name="Cinematography Node",
        description="Analyzing camera movement, focal shifts, and lighting dynamics.",
        instructions="""
ROLE: CINEMATOGRAPHY NODE (VISION PHASE)
TASK: Specify light temperature (Kelvin), light decay curves, and camera lens optics.
Identify lens flare types (anamorphic/spherical) and depth-of-field metrics.
""",
    ),
    AgentDirectoryEntry(
        id="technical",
        name="Optical Architect",
        description="Evaluating textures, motion blur, and technical rendering quality.",
        instructions="""
ROLE: RENDER SCIENTIST (VISION PHASE)
TASK: Extract PBR data: Albedo, Roughness, Metallic. Identify simulation components:
Fluid dynamics, smoke density, and motion vector trails.
""",
    ),
    AgentDirectoryEntry(
        id="emotional",
        name="Temporal Narrative",
        description="Mapping the mood progression and symbolic storytelling arc.",
        instructions="""
ROLE: ATMOSPHERIC AGENT (VISION PHASE)
TASK: Map the color grading profile (e.g., Bleach Bypass, Technicolor).
Define the narrative tension beats and symbolic storytelling frequency.
""",
    ),
    AgentDirectoryEntry(
        id="research",
        name="Style Historian",
        description="Cross-referencing cinematic eras and artistic movements.",
        instructions="""
ROLE: STYLE HISTORIAN (VISION PHASE)
TASK: Cite specific artistic movements, historical lighting techniques (Chiaroscuro),
and film director references (e.g., Villeneuve, Tarkovsky, Kubrick).
""",
    ),
    AgentDirectoryEntry(
        id="consolidator",
        name="Synthesis Nexus",
        description="Merging multi-perspective temporal data into a coherent audit.",
        instructions="""
ROLE: SYNTHESIS CORE (REASONING PHASE - PRO)
TASK: Integrate all node data into a unified, high-fidelity architectural report.
Resolve contradictions and define the "Visual DNA" of the asset.
""",
        tier=ModelTier.REASONING,
    ),
    AgentDirectoryEntry(
        id="optimizer",
        name="Prompt Engineer",
        description="Encoding the analysis into hyper-optimized generative syntax.",
        instructions="""
ROLE: GENERATIVE COMPILER (REASONING PHASE - PRO)
TASK: Encode the synthesis into a hyper-optimized prompt string.
FORMAT: [Physics] + [Optics] + [Narrative/Style] + [Render Tags].
USE: Comma-separated technical descriptors. No conversation.
""",
        tier=ModelTier.REASONING,
    ),
)

AGENT_DIRECTORY = AgentDirectory(AGENT_ENTRIES)
