from __future__ import annotations

from typing import Dict, Optional

from yield_tracker.models import ProtocolInfo


PROTOCOLS: Dict[str, ProtocolInfo] = {
    "SAROS": ProtocolInfo(name="Saros", color="#10B981", website="https://saros.finance", description="Saros DLMM liquidity pools"),
    "JUPITER": ProtocolInfo(name="Jupiter", color="#FCD34D", website="https://jup.ag", description="Jupiter swap aggregator"),
    "RAYDIUM": ProtocolInfo(name="Raydium", color="#7C3AED", website="https://raydium.io", description="Raydium concentrated liquidity"),
    "METEORA": ProtocolInfo(name="Meteora", color="#3B82F6", website="https://meteora.ag", description="Meteora DLMM pairs"),
    "KAMINO": ProtocolInfo(name="Kamino", color="#EF4444", website="https://kamino.finance", description="Kamino lending and vaults"),
    "SOLEND": ProtocolInfo(name="Solend", color="#6366F1", website="https://save.finance", description="Save (formerly Solend) lending"),
    "MARINADE": ProtocolInfo(name="Marinade", color="#14B8A6", website="https://marinade.finance", description="Marinade liquid staking"),
    "JITO": ProtocolInfo(name="Jito", color="#22C55E", website="https://jito.network", description="Jito liquid staking"),
    "ORCA": ProtocolInfo(name="Orca", color="#F59E0B", website="https://orca.so", description="Orca whirlpools"),
    "DRIFT": ProtocolInfo(name="Drift", color="#8B5CF6", website="https://drift.trade", description="Drift lending"),
    "MARGINFI": ProtocolInfo(name="MarginFi", color="#0EA5E9", website="https://marginfi.com", description="MarginFi lending"),
}

# DeFiLlama project slug fragment -> canonical protocol name, first match wins
PROJECT_NAMES = [
    ("kamino", "Kamino"),
    ("solend", "Solend"),
    ("save", "Solend"),
    ("marinade", "Marinade"),
    ("jito", "Jito"),
    ("saros", "Saros"),
    ("meteora", "Meteora"),
    ("orca", "Orca"),
    ("raydium", "Raydium"),
    ("drift", "Drift"),
    ("marginfi", "MarginFi"),
]


def protocol_info(name: str) -> Optional[ProtocolInfo]:
    return PROTOCOLS.get(name.upper())


def map_project_name(project: str) -> str:
    lowered = project.lower()
    for fragment, name in PROJECT_NAMES:
        if fragment in lowered:
            return name
    return project[:1].upper() + project[1:].lower()


def same_protocol(a: str, b: str) -> bool:
    return a.casefold() == b.casefold()
