from PIL import Image, ImageDraw, ImageFont
import os
import qrcode

from models import format_money
from services import DEFAULT_SETTINGS, TAX_RATE

RECEIPTS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'receipts')


def _text_size(draw_obj, text, font):
    bbox = draw_obj.textbbox((0, 0), text, font=font)
    return (bbox[2] - bbox[0], bbox[3] - bbox[1])


def _wrap_text(draw_obj, text, font, max_w):
    """Wrap text to fit within max_w using the provided font."""
    words = (text or '').split()
    if not words:
        return ['']
    lines = []
    cur = words[0]
    for w in words[1:]:
        tw, _ = _text_size(draw_obj, cur + ' ' + w, font)
        if tw <= max_w:
            cur = cur + ' ' + w
        else:
            lines.append(cur)
            cur = w
    lines.append(cur)
    return lines


class ReceiptGenerator:
    @staticmethod
    def _load_font(size):
        # Try common system fonts, fallback to default
        candidates = ["arial.ttf", "DejaVuSans.ttf", "LiberationSans-Regular.ttf"]
        for f in candidates:
            try:
                return ImageFont.truetype(f, size)
            except OSError:
                continue
        return ImageFont.load_default()

    @staticmethod
    def generate(transaction, settings=None, out_dir=None):
        """Render a PNG receipt for a recorded transaction and return its path."""
        settings = settings or DEFAULT_SETTINGS
        store = settings.get('store', DEFAULT_SETTINGS['store'])
        receipt_cfg = settings.get('receipt', DEFAULT_SETTINGS['receipt'])
        currency = settings.get('app', DEFAULT_SETTINGS['app']).get('currency', 'IDR')

        receipts_dir = out_dir or RECEIPTS_DIR
        os.makedirs(receipts_dir, exist_ok=True)
        png_path = os.path.join(receipts_dir, f"{transaction.id}.png")

        width = 800
        header_h = 230
        line_h = 28
        footer_h = 220
        x = 40

        tmp_draw = ImageDraw.Draw(Image.new('RGB', (1, 1)))

        f_head = ReceiptGenerator._load_font(28)
        f_sub = ReceiptGenerator._load_font(16)
        f_body = ReceiptGenerator._load_font(14)
        f_mono = ReceiptGenerator._load_font(12)

        # Column positions
        right_boundary = width - x
        value_x = right_boundary - 20
        col_total_right = value_x
        col_price_right = value_x - 140
        col_qty_center = col_price_right - 90
        item_col_w = max(80, int(col_qty_center - x) - 20)

        # Precompute wrapped lines for each item so we can calculate exact height
        prepared_items = []
        total_items_height = 0
        for it in transaction.items:
            lines = _wrap_text(tmp_draw, str(it.get('name') or ''), f_mono, item_col_w)
            h = len(lines) * line_h + 6
            total_items_height += h
            prepared_items.append({
                'lines': lines,
                'quantity': str(it.get('quantity')),
                'price': format_money(float(it.get('price') or 0), currency),
                'total': format_money(float(it.get('subtotal') or 0), currency),
            })

        items_h = max(120, total_items_height + 20)
        height = header_h + items_h + footer_h

        img = Image.new('RGB', (width, height), color=(255, 255, 255))
        draw = ImageDraw.Draw(img)

        y = 30
        if receipt_cfg.get('show_logo', True):
            # simple monogram badge in place of a logo file
            initial = (store.get('name') or '?')[:1].upper()
            draw.rectangle((x, y, x + 60, y + 60), outline=(20, 20, 20), width=2)
            tw, th = _text_size(draw, initial, f_head)
            draw.text((x + (60 - tw) / 2, y + (60 - th) / 2 - 4), initial, font=f_head, fill=(20, 20, 20))
            x_text = x + 76
        else:
            x_text = x

        # Header
        draw.text((x_text, y), store.get('name') or '', font=f_head, fill=(20, 20, 20))
        y += 36
        draw.text((x_text, y), store.get('address') or '', font=f_sub, fill=(60, 60, 60))
        y += 20
        contact = " | ".join(v for v in (store.get('phone'), store.get('email')) if v)
        draw.text((x_text, y), contact, font=f_sub, fill=(60, 60, 60))
        y += 30
        draw.text((x, y), f"Transaction #: {transaction.id}", font=ReceiptGenerator._load_font(18), fill=(0, 0, 0))
        y += 22
        draw.text((x, y), f"Date: {transaction.date.strftime('%d %B %Y, %H:%M')}", font=f_body, fill=(0, 0, 0))
        y += 20
        draw.text((x, y), f"Customer: {transaction.customer_name}", font=f_body, fill=(0, 0, 0))
        y += 24
        if receipt_cfg.get('header'):
            draw.text((x, y), receipt_cfg['header'], font=f_body, fill=(80, 80, 80))
        y = header_h - 20

        draw.line((x, y, width - x, y), fill=(200, 200, 200), width=1)
        y += 6

        # Column headers
        draw.text((x, y), "Item", font=f_mono, fill=(0, 0, 0))
        tw_q, _ = _text_size(draw, "Qty", f_mono)
        draw.text((col_qty_center - tw_q / 2, y), "Qty", font=f_mono, fill=(0, 0, 0))
        tw_p, _ = _text_size(draw, "Price", f_mono)
        draw.text((col_price_right - tw_p, y), "Price", font=f_mono, fill=(0, 0, 0))
        tw_t, _ = _text_size(draw, "Total", f_mono)
        draw.text((col_total_right - tw_t, y), "Total", font=f_mono, fill=(0, 0, 0))
        y += 18
        draw.line((x, y, width - x, y), fill=(230, 230, 230), width=1)
        y += 8

        for itm in prepared_items:
            first_line = True
            for ln in itm['lines']:
                draw.text((x, y), ln, font=f_mono, fill=(20, 20, 20))
                if first_line:
                    qw, _ = _text_size(draw, itm['quantity'], f_mono)
                    draw.text((col_qty_center - qw / 2, y), itm['quantity'], font=f_mono, fill=(20, 20, 20))
                    pw, _ = _text_size(draw, itm['price'], f_mono)
                    draw.text((col_price_right - pw, y), itm['price'], font=f_mono, fill=(20, 20, 20))
                    tw_item, _ = _text_size(draw, itm['total'], f_mono)
                    draw.text((col_total_right - tw_item, y), itm['total'], font=f_mono, fill=(20, 20, 20))
                    first_line = False
                y += line_h
            draw.line((x, y, width - x, y), fill=(245, 245, 245), width=1)
            y += 6

        # Totals block starts at the footer regardless of how short the item list was
        y = max(y + 10, header_h + items_h)
        lines_to_draw = [f"Subtotal: {format_money(transaction.subtotal, currency)}"]
        if receipt_cfg.get('show_tax_details', True):
            lines_to_draw.append(f"Tax ({int(round(TAX_RATE * 100))}%): {format_money(transaction.tax, currency)}")
        lines_to_draw.append(f"Total: {format_money(transaction.total, currency)}")
        lines_to_draw.append(f"Paid: {format_money(transaction.cash_amount, currency)}")
        lines_to_draw.append(f"Change: {format_money(transaction.change, currency)}")
        for txt in lines_to_draw:
            twt, _ = _text_size(draw, txt, f_body)
            color = (0, 100, 0) if txt.startswith('Total') or txt.startswith('Change') else (0, 0, 0)
            draw.text((value_x - twt, y), txt, font=f_body, fill=color)
            y += line_h - 4

        if receipt_cfg.get('footer'):
            draw.text((x, y + 6), receipt_cfg['footer'], font=f_sub, fill=(80, 80, 80))

        # QR code of the transaction id in the upper-right header area
        qr_size = 140
        qr = qrcode.QRCode(box_size=4, border=2)
        qr.add_data(str(transaction.id))
        qr.make(fit=True)
        qr_img = qr.make_image(fill_color="black", back_color="white").convert('RGB')
        qr_img = qr_img.resize((qr_size, qr_size), Image.NEAREST)
        img.paste(qr_img, (width - qr_size - 20, 20))

        img.save(png_path)
        return png_path
