"""
Audio handling for the Opus transcoder.

Input format detection, decoders producing PCM WAV for inputs the encoder
cannot read, the WAV writer, and the ``opusenc`` invocation.
"""
