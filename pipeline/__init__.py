"""Daily metrics orchestration and batch refresh."""
