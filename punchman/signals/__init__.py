"""
Punchman signals - public event API.

All signals are sent after the ledger transaction commits
(transaction.on_commit), so receivers only ever see durable facts.
Receivers typically trigger notifications; they must not write to the
loyalty ledger.

Emitted signals:
- punches_awarded: LoyaltyAccount credited (earning or referral bonus)
- reward_earned: a cycle completed and a pending reward was issued
- reward_redeemed: a pending reward was consumed by an appointment
- rewards_expired: stale pending rewards were marked expired
- referral_applied: a referral code was accepted at registration
- referral_completed: referral bonuses were paid to both parties
"""

from django.dispatch import Signal

# Earning signals
punches_awarded = Signal()  # sender=LoyaltyAccount, account, punches, sources, appointment_id
reward_earned = Signal()  # sender=LoyaltyRedemption, redemption

# Redemption signals
reward_redeemed = Signal()  # sender=LoyaltyRedemption, redemption, appointment_id, redemption_value
rewards_expired = Signal()  # sender=LoyaltyRedemption, count, customer_id (None for the sweep)

# Referral signals
referral_applied = Signal()  # sender=Referral, referral
referral_completed = Signal()  # sender=Referral, referral, result
