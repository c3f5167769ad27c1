from datetime import datetime
import platform
from typing import Iterable

import pandas as pd


def start_audit(identifier: Iterable[str] = ()) -> list[str]:
    entries = [f"Session start: {datetime.now().isoformat()}",
               f"Platform: {platform.platform()}"]
    keywords = [str(item) for item in identifier]
    if keywords:
        entries.append(f"Genotype keywords: {', '.join(keywords)}")
    return entries


def log_step(audit: list[str], msg: str, *args) -> None:
    audit.append(msg % args if args else msg)


def log_frame(audit: list[str], label: str, frame: pd.DataFrame) -> None:
    audit.append(f"{label}: {len(frame)} rows")
