"""
Anonymous MACI coordinator: command codec, validation, batch processing,
deactivation and tallying.
"""

from .errors import AMACIError, PhaseError, CommitmentMismatchError
from .command import (
    Command,
    Message,
    MessageChain,
    pack_command,
    unpack_command,
    sign_command,
    verify_command_signature,
    chain_message_hash,
    empty_message,
    encrypt_command,
    decrypt_command,
)
from .state import StateLeaf, DeactivateLeaf, state_tree_zero_leaf
from .validator import ValidationResult, validate_command, transform_state_leaf, is_active, vote_cost
from .commitments import CommitmentLog, NullifierSet
from .deactivate import (
    AddKeyWitness,
    AddKeyProof,
    AddKeyRequest,
    WitnessCheckingBackend,
    DeactivateBatchResult,
    compute_nullifier,
    gen_add_key_witness,
    gen_add_key_request,
    verify_add_key_witness,
    gen_account_deactivate_root,
)
from .tally import MAX_VOTES, ProcessTallyResult, pack_tally_value, unpack_tally_value
from .coordinator import Coordinator, Phase, ProcessMessagesResult
from .voter import VoterClient, MessagePayload

__version__ = "1.0.0"

__all__ = [
    'AMACIError',
    'PhaseError',
    'CommitmentMismatchError',
    'Command',
    'Message',
    'MessageChain',
    'pack_command',
    'unpack_command',
    'sign_command',
    'verify_command_signature',
    'chain_message_hash',
    'empty_message',
    'encrypt_command',
    'decrypt_command',
    'StateLeaf',
    'DeactivateLeaf',
    'state_tree_zero_leaf',
    'ValidationResult',
    'validate_command',
    'transform_state_leaf',
    'is_active',
    'vote_cost',
    'CommitmentLog',
    'NullifierSet',
    'AddKeyWitness',
    'AddKeyProof',
    'AddKeyRequest',
    'WitnessCheckingBackend',
    'DeactivateBatchResult',
    'compute_nullifier',
    'gen_add_key_witness',
    'gen_add_key_request',
    'verify_add_key_witness',
    'gen_account_deactivate_root',
    'MAX_VOTES',
    'ProcessTallyResult',
    'pack_tally_value',
    'unpack_tally_value',
    'Coordinator',
    'Phase',
    'ProcessMessagesResult',
    'VoterClient',
    'MessagePayload',
]
