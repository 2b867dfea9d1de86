"""
Command Codec
=============
Packing, signing, encryption and hash chaining of voter commands.

Packed layout (LSB first): nonce[0:32) stateIdx[32:64) voIdx[64:96)
newVotes[96:192) salt[192:). Well-formed salts are 56 bits wide.
"""

import dataclasses
import logging
import secrets
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from babyjub.curve import Point
from babyjub.eddsa import Signature, sign_message, verify_signature
from babyjub.keys import gen_ecdh_shared_key
from fieldmath.cipher import DecryptionError, poseidon_decrypt, poseidon_encrypt
from fieldmath.packing import pack_words, unpack_words
from fieldmath.poseidon import hash10, poseidon

logger = logging.getLogger(__name__)

COMMAND_WIDTHS = [32, 32, 32, 96, None]
SALT_BITS = 56

# [packed, newPubKey.x, newPubKey.y, R8.x, R8.y, S]
PLAINTEXT_LENGTH = 6
# Poseidon cipher output for six elements
MESSAGE_LENGTH = 7

CIPHER_NONCE = 0


# ============================================================================
# PACKING
# ============================================================================


def gen_command_salt() -> int:
    return secrets.randbits(SALT_BITS)


def pack_command(nonce: int, state_idx: int, vo_idx: int, new_votes: int,
                 salt: Optional[int] = None) -> int:
    """nonce + stateIdx<<32 + voIdx<<64 + newVotes<<96 + salt<<192"""
    if salt is None:
        salt = gen_command_salt()
    return pack_words([nonce, state_idx, vo_idx, new_votes, salt], COMMAND_WIDTHS)


def unpack_command(packed: int) -> dict:
    nonce, state_idx, vo_idx, new_votes, salt = unpack_words(packed, COMMAND_WIDTHS)
    return {
        'nonce': nonce,
        'state_idx': state_idx,
        'vo_idx': vo_idx,
        'new_votes': new_votes,
        'salt': salt,
    }


# ============================================================================
# COMMAND
# ============================================================================


@dataclass
class Command:
    """A decrypted voter instruction"""
    nonce: int
    state_idx: int
    vo_idx: int
    new_votes: int
    new_pub_key: Point = (0, 0)
    salt: int = 0
    signature: Optional[Signature] = None

    def pack(self) -> int:
        return pack_command(self.nonce, self.state_idx, self.vo_idx, self.new_votes, self.salt)

    def msg_hash(self) -> int:
        """The value a voter signs: Poseidon(packed, newPubKey)"""
        return poseidon([self.pack(), self.new_pub_key[0], self.new_pub_key[1]])

    def sign(self, priv_key: int) -> "Command":
        return dataclasses.replace(self, signature=sign_message(priv_key, self.msg_hash()))

    def to_plaintext(self) -> List[int]:
        if self.signature is None:
            raise ValueError("Command must be signed before encryption")
        return [
            self.pack(),
            self.new_pub_key[0],
            self.new_pub_key[1],
            self.signature.r8[0],
            self.signature.r8[1],
            self.signature.s,
        ]

    @classmethod
    def from_plaintext(cls, plaintext: Sequence[int]) -> "Command":
        if len(plaintext) != PLAINTEXT_LENGTH:
            raise ValueError(f"Command plaintext must hold {PLAINTEXT_LENGTH} elements")
        fields = unpack_command(plaintext[0])
        return cls(
            new_pub_key=(plaintext[1], plaintext[2]),
            signature=Signature(r8=(plaintext[3], plaintext[4]), s=plaintext[5]),
            **fields,
        )


def sign_command(priv_key: int, command: Command) -> Command:
    return command.sign(priv_key)


def verify_command_signature(command: Command, pub_key: Sequence[int]) -> bool:
    """Signature check that never raises"""
    if command is None or command.signature is None:
        return False
    try:
        msg_hash = command.msg_hash()
    except ValueError:
        return False
    return verify_signature(msg_hash, command.signature, pub_key)


# ============================================================================
# MESSAGES
# ============================================================================


def chain_message_hash(ciphertext: Sequence[int], enc_pub_key: Sequence[int], prev_hash: int) -> int:
    """Poseidon10 over the 7 ciphertext words, encryption key and previous hash"""
    if len(ciphertext) != MESSAGE_LENGTH:
        raise ValueError(f"Message ciphertext must hold {MESSAGE_LENGTH} elements")
    return hash10(list(ciphertext) + [enc_pub_key[0], enc_pub_key[1], prev_hash])


@dataclass
class Message:
    ciphertext: List[int]
    enc_pub_key: Point
    prev_hash: int = 0
    hash: int = 0

    def is_empty(self) -> bool:
        return self.ciphertext[0] == 0


def empty_message() -> Message:
    """Inert padding entry for partially filled batches"""
    return Message(ciphertext=[0] * MESSAGE_LENGTH, enc_pub_key=(0, 0), prev_hash=0, hash=0)


@dataclass
class MessageChain:
    """Append-only message queue with its running hash"""
    messages: List[Message] = field(default_factory=list)

    @property
    def head(self) -> int:
        return self.messages[-1].hash if self.messages else 0

    def append(self, ciphertext: Sequence[int], enc_pub_key: Sequence[int]) -> Message:
        prev_hash = self.head
        message = Message(
            ciphertext=list(ciphertext),
            enc_pub_key=(enc_pub_key[0], enc_pub_key[1]),
            prev_hash=prev_hash,
            hash=chain_message_hash(ciphertext, enc_pub_key, prev_hash),
        )
        self.messages.append(message)
        return message

    def __len__(self) -> int:
        return len(self.messages)

    def __getitem__(self, index):
        return self.messages[index]


# ============================================================================
# ENCRYPTION
# ============================================================================


def encrypt_command(command: Command, enc_priv_key: int, coord_pub_key: Sequence[int]) -> List[int]:
    shared_key = gen_ecdh_shared_key(enc_priv_key, coord_pub_key)
    return poseidon_encrypt(command.to_plaintext(), shared_key, CIPHER_NONCE)


def decrypt_command(ciphertext: Sequence[int], enc_pub_key: Sequence[int],
                    coord_priv_key: int) -> Optional[Command]:
    """Recover a command, or None when the message cannot be decrypted"""
    try:
        shared_key = gen_ecdh_shared_key(coord_priv_key, enc_pub_key)
        plaintext = poseidon_decrypt(ciphertext, shared_key, CIPHER_NONCE, PLAINTEXT_LENGTH)
    except (DecryptionError, ZeroDivisionError, ValueError) as e:
        logger.debug(f"Message decrypt error: {e}")
        return None
    return Command.from_plaintext(plaintext)
