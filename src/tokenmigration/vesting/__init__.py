from tokenmigration.vesting.schedule import ClaimResult, VestingAllocation, VestingSchedule

__all__ = ["ClaimResult", "VestingAllocation", "VestingSchedule"]
