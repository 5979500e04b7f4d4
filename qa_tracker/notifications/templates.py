"""Plain-text notification templates.

Placeholders are filled with ``str.format_map``; unknown placeholders are
left as-is rather than raising.
"""

EVALUATION_COMPLETED_SUBJECT = "New QA evaluation: {percentage}%"
EVALUATION_COMPLETED_BODY = """\
Hello {agent_name},

A new QA evaluation has been completed for your {interaction_type} interaction.

Score: {score} / {max_possible} ({percentage}%)
Evaluator: {evaluator_name}
Date: {date}

Strengths:
{strengths}

Areas for improvement:
{areas_for_improvement}

Evaluation ID: {evaluation_id}
"""

DISPUTE_FILED_SUBJECT = "Dispute filed for evaluation {evaluation_id}"
DISPUTE_FILED_BODY = """\
A dispute has been filed and is awaiting review.

Agent: {agent_name}
Submitted by: {submitter_name}
Reason: {reason}
Current score: {score} / {max_possible}
Requested change: {requested_score_change}

Details:
{details}

Dispute ID: {dispute_id}
"""

DISPUTE_RESOLVED_SUBJECT = "Dispute {decision}: evaluation {evaluation_id}"
DISPUTE_RESOLVED_BODY = """\
The dispute for evaluation {evaluation_id} has been reviewed.

Decision: {decision}
Reviewed by: {reviewer_name}
Score: {score_before} -> {score_after} (out of {max_possible})

Review notes:
{review_notes}

Dispute ID: {dispute_id}
"""
